"""
Shared utility helpers.

This module keeps the "sharp edges" (error types and validation) in one place
so the rest of the code can stay focused on page and layout work.
"""

from __future__ import annotations

import math
from pathlib import Path
from typing import Optional, Tuple


class UserError(Exception):
    """Raised for user-facing problems that should show a clear message."""


class DocumentLoadError(UserError):
    """The source document could not be decoded at all."""


class PageRenderError(UserError):
    """
    A single source page failed to rasterize.

    source_index is 1-based (matching printed page numbers) and stage names
    the step that failed: "render", "split-left" or "split-right".
    """

    def __init__(self, message: str, source_index: Optional[int] = None, stage: str = "render"):
        super().__init__(message)
        self.source_index = source_index
        self.stage = stage


class InsufficientPagesError(UserError):
    """Covers-facing arrangement needs at least two pages."""


class ProcessingCancelled(UserError):
    """A processing run was abandoned before it finished."""


def normalize_path(value: str) -> Path:
    """
    Convert user input to a Path.

    We do not resolve() here because we want to preserve relative paths in
    manifests and error messages.
    """

    return Path(value).expanduser()


def ensure_file_exists(path: Path, label: str) -> Path:
    """Validate that a path exists and is a file."""

    if not path.exists():
        raise UserError(f"{label} not found: {path}")
    if not path.is_file():
        raise UserError(f"{label} is not a file: {path}")
    return path


def ensure_dir(path: Path, dry_run: bool) -> None:
    """Create a directory if needed, unless this is a dry-run."""

    if dry_run:
        return
    path.mkdir(parents=True, exist_ok=True)


def ensure_dir_path(path: Path, label: str) -> None:
    """Ensure a path is either a directory or does not exist yet."""

    if path.exists() and not path.is_dir():
        raise UserError(f"{label} is not a directory: {path}")


def validate_positive_int(value: int, label: str) -> int:
    """Common validation for options like workers or jpeg quality."""

    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise UserError(f"{label} must be a positive integer.")
    return value


def validate_positive_number(value: float, label: str) -> float:
    """Reject zero, negative, NaN and infinite values."""

    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise UserError(f"{label} must be a number.")
    if not math.isfinite(value) or value <= 0:
        raise UserError(f"{label} must be a finite number > 0.")
    return float(value)


def clamp01(value: float) -> float:
    """Clamp a value into [0, 1]."""

    return max(0.0, min(1.0, value))


def parse_size(spec: str, label: str) -> Tuple[float, float]:
    """
    Parse a "WIDTHxHEIGHT" string like "1280x800".

    Both parts must be positive numbers.
    """

    raw = spec.strip().lower().replace(" ", "")
    parts = raw.split("x")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise UserError(f"{label} must look like WIDTHxHEIGHT, got '{spec}'.")
    try:
        width = float(parts[0])
        height = float(parts[1])
    except ValueError as exc:
        raise UserError(f"{label} must look like WIDTHxHEIGHT, got '{spec}'.") from exc
    validate_positive_number(width, f"{label} width")
    validate_positive_number(height, f"{label} height")
    return width, height
