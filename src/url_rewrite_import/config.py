"""url_rewrite_import.config

YAML import profiles.

A profile fixes the knobs of a recurring import so the CLI call stays short:

    behavior: replace
    bunch_size: 500
    validation_strategy: validation-skip-errors
    allowed_error_count: 25
    table: url_rewrite

Every key is optional; CLI flags override profile values.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

import yaml

from url_rewrite_import.bunch_source import DEFAULT_BUNCH_SIZE
from url_rewrite_import.error_aggregator import (
    DEFAULT_ALLOWED_ERROR_COUNT,
    STRATEGY_STOP_ON_ERRORS,
    VALID_STRATEGIES,
)
from url_rewrite_import.url_rewrite import (
    BEHAVIOR_APPEND,
    TABLE,
    VALID_BEHAVIORS,
    ImportConfigError,
)

KNOWN_KEYS = frozenset({
    "behavior",
    "bunch_size",
    "validation_strategy",
    "allowed_error_count",
    "table",
})


@dataclass(frozen=True)
class ImportProfile:
    behavior: str = BEHAVIOR_APPEND
    bunch_size: int = DEFAULT_BUNCH_SIZE
    validation_strategy: str = STRATEGY_STOP_ON_ERRORS
    allowed_error_count: int = DEFAULT_ALLOWED_ERROR_COUNT
    table: str = TABLE

    def with_overrides(self, **overrides: Any) -> "ImportProfile":
        """Return a copy with every non-None override applied, then validated."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        profile = replace(self, **changes)
        validate_profile(profile)
        return profile


def validate_profile(profile: ImportProfile) -> None:
    if profile.behavior not in VALID_BEHAVIORS:
        raise ImportConfigError(
            f"Invalid behavior {profile.behavior!r}. Must be one of {list(VALID_BEHAVIORS)}."
        )
    if profile.validation_strategy not in VALID_STRATEGIES:
        raise ImportConfigError(
            f"Invalid validation_strategy {profile.validation_strategy!r}. "
            f"Must be one of {list(VALID_STRATEGIES)}."
        )
    if profile.bunch_size < 1:
        raise ImportConfigError(f"bunch_size must be >= 1, got {profile.bunch_size}.")
    if profile.allowed_error_count < 0:
        raise ImportConfigError(
            f"allowed_error_count must be >= 0, got {profile.allowed_error_count}."
        )
    if not profile.table:
        raise ImportConfigError("table cannot be empty.")


def load_profile(yaml_path: Path) -> ImportProfile:
    """Load and validate an ImportProfile from a YAML file.

    Raises:
        ImportConfigError: unknown keys, wrong types or invalid values.
        FileNotFoundError: If the YAML file does not exist.
    """
    raw = yaml_path.read_text(encoding="utf-8")
    data = yaml.safe_load(raw) or {}
    if not isinstance(data, dict):
        raise ImportConfigError("YAML root must be a mapping.")

    unknown = set(data) - KNOWN_KEYS
    if unknown:
        raise ImportConfigError(f"Unknown profile keys: {sorted(unknown)}")

    try:
        profile = ImportProfile(
            behavior=str(data.get("behavior", BEHAVIOR_APPEND)),
            bunch_size=int(data.get("bunch_size", DEFAULT_BUNCH_SIZE)),
            validation_strategy=str(data.get("validation_strategy", STRATEGY_STOP_ON_ERRORS)),
            allowed_error_count=int(data.get("allowed_error_count", DEFAULT_ALLOWED_ERROR_COUNT)),
            table=str(data.get("table", TABLE)),
        )
    except (TypeError, ValueError) as e:
        raise ImportConfigError(f"Invalid profile value: {e}") from e
    validate_profile(profile)
    return profile
