"""Utility helpers for :mod:`pdfcompressx`."""

from __future__ import annotations

import dataclasses
import logging
import os
from pathlib import Path
from typing import Any, Callable, Generic, TypeVar

from .exceptions import DanglingReferenceError

_LOGGER = logging.getLogger("pdfcompressx")

T = TypeVar("T")


def get_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.propagate = False
    return logger


def resolve_path(path: os.PathLike[str] | str) -> Path:
    """Resolve *path* into an absolute :class:`~pathlib.Path`."""

    resolved = Path(path).expanduser().resolve()
    _LOGGER.debug("Resolved path '%s' to '%s'", path, resolved)
    return resolved


def ensure_parent_dir(path: Path) -> None:
    """Create parent directory for *path* if it does not exist."""

    path.parent.mkdir(parents=True, exist_ok=True)


def read_source(source: bytes | bytearray | memoryview | str | os.PathLike[str]) -> bytes:
    """Return PDF bytes given either the bytes themselves or a file path."""

    if isinstance(source, (bytes, bytearray, memoryview)):
        return bytes(source)
    path = resolve_path(source)
    if not path.exists():
        raise FileNotFoundError(path)
    return path.read_bytes()


def sizeof_fmt(num_bytes: float) -> str:
    """Format *num_bytes* into a human-friendly string."""

    step_unit = 1024.0
    for unit in ("bytes", "KiB", "MiB", "GiB"):
        if abs(num_bytes) < step_unit:
            return f"{num_bytes:3.1f} {unit}"
        num_bytes /= step_unit
    return f"{num_bytes:.1f} TiB"


@dataclasses.dataclass(slots=True)
class Outcome(Generic[T]):
    """Result of a best-effort step: either a value or the error that was skipped."""

    ok: bool
    value: T | None = None
    error: BaseException | None = None

    @property
    def skipped(self) -> bool:
        return not self.ok


def attempt(
    action: Callable[..., T],
    *args: Any,
    description: str,
    logger: logging.Logger = _LOGGER,
    **kwargs: Any,
) -> Outcome[T]:
    """Run *action* and absorb any exception it raises.

    Per-object transforms use this so one malformed dictionary never aborts
    the whole document. Dangling references are expected after deletions and
    are logged quietly; everything else is logged as a warning.
    """

    try:
        return Outcome(True, action(*args, **kwargs))
    except DanglingReferenceError as exc:
        logger.debug("Skipping %s: %s (already removed)", description, exc)
        return Outcome(False, error=exc)
    except Exception as exc:
        logger.warning("Skipping %s: %s", description, exc)
        return Outcome(False, error=exc)


__all__ = [
    "Outcome",
    "attempt",
    "ensure_parent_dir",
    "get_logger",
    "read_source",
    "resolve_path",
    "sizeof_fmt",
]
