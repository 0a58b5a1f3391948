"""
Processing configuration and YAML-backed command options.
"""

from __future__ import annotations

from copy import deepcopy
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict

import yaml

from .utils import UserError, ensure_file_exists, validate_positive_int, validate_positive_number


ON_PAGE_ERROR_POLICIES = {"abort", "placeholder"}
RECOMMENDED_DPI_RANGE = (150, 300)


def _require_bool(value: Any, key: str) -> bool:
    """Require a strict boolean (YAML 'false' strings are a common mistake)."""

    if isinstance(value, bool):
        return value
    raise UserError(f"{key} must be true or false.")


@dataclass(frozen=True)
class ProcessingConfig:
    """
    Settings for one processing run.

    Frozen so a run always sees the snapshot it started with.
    """

    dpi: float = 200
    spread_threshold: float = 1.2
    max_width: float = 1600
    max_height: float = 1600
    enable_spread_split: bool = True
    cover_may_be_spread: bool = False
    on_page_error: str = "abort"
    workers: int = 1

    def __post_init__(self) -> None:
        validate_positive_number(self.dpi, "dpi")
        validate_positive_number(self.spread_threshold, "spread_threshold")
        if self.spread_threshold <= 1.0:
            raise UserError("spread_threshold must be > 1.0.")
        validate_positive_number(self.max_width, "max_width")
        validate_positive_number(self.max_height, "max_height")
        _require_bool(self.enable_spread_split, "enable_spread_split")
        _require_bool(self.cover_may_be_spread, "cover_may_be_spread")
        if self.on_page_error not in ON_PAGE_ERROR_POLICIES:
            raise UserError("on_page_error must be one of: abort, placeholder.")
        validate_positive_int(self.workers, "workers")

    @property
    def dpi_in_recommended_range(self) -> bool:
        low, high = RECOMMENDED_DPI_RANGE
        return low <= self.dpi <= high


PROCESSING_KEYS = set(ProcessingConfig.__dataclass_fields__.keys())

DEFAULT_BUILD: dict[str, Any] = {
    **asdict(ProcessingConfig()),
    "covers_facing": False,
    "image_format": "jpeg",
    "jpeg_quality": 92,
    "prefix": None,
    "overwrite": False,
    "dry_run": False,
    "manifest": None,
}


def processing_config_from_options(options: Dict[str, Any]) -> ProcessingConfig:
    """Build a ProcessingConfig from the processing subset of merged options."""

    values = {key: options[key] for key in PROCESSING_KEYS if key in options}
    return ProcessingConfig(**values)


def load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML file into a dictionary."""

    ensure_file_exists(path, "Config file")
    try:
        with path.open("r", encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        raise UserError(f"Failed to parse YAML config {path}: {exc}") from exc
    except OSError as exc:
        raise UserError(f"Failed to read config {path}: {exc}") from exc

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise UserError(f"Config {path} must contain a YAML mapping/object at top level.")
    return loaded


def deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """
    Recursively merge dictionaries where overlay values win.
    """

    merged = deepcopy(base)
    for key, value in overlay.items():
        if (
            key in merged
            and isinstance(merged[key], dict)
            and isinstance(value, dict)
        ):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = deepcopy(value)
    return merged


def validate_keys(cfg: dict[str, Any], allowed: set[str], ctx: str) -> None:
    """
    Validate dictionary keys and fail fast on unknown entries.
    """

    unknown = sorted(key for key in cfg.keys() if key not in allowed)
    if unknown:
        allowed_list = ", ".join(sorted(allowed))
        unknown_list = ", ".join(unknown)
        raise UserError(
            f"Unknown keys in {ctx}: {unknown_list}. Allowed keys: {allowed_list}."
        )


def dump_default_build_yaml() -> str:
    """Serialize wrapped build defaults as YAML."""

    return yaml.safe_dump({"build": DEFAULT_BUILD}, sort_keys=False).rstrip()
