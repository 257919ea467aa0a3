"""Value helpers for URL-rewrite import rows.

All cell helpers accept the raw cell (str | None, occasionally int from
in-memory sources) and return the cleaned value or None.
"""

from __future__ import annotations

from typing import Any, Hashable, Iterable


# ---------------------------------------------------------------------------
# Cells
# ---------------------------------------------------------------------------

def trim(value: str | None) -> str | None:
    """Strip leading/trailing whitespace; treat empty string as None."""
    if value is None:
        return None
    v = value.strip()
    return v if v else None


def clean_cell(value: Any) -> Any:
    """Trim string cells; pass non-string values (ints, None) through."""
    if isinstance(value, str):
        return trim(value)
    return value


def normalize_headers(raw: dict[str, Any]) -> dict[str, Any]:
    """Return a new row with header keys whitespace-stripped and cells trimmed."""
    return {k.strip(): clean_cell(v) for k, v in raw.items() if k is not None}


# ---------------------------------------------------------------------------
# Redirect type
# ---------------------------------------------------------------------------

def redirect_type_text(value: Any) -> str | None:
    """Return the redirect type as the string the validator compares.

    301 and "301" are the same value; "301.0" or " 301" are not (only the
    surrounding whitespace trimmed by the source is forgiven).
    """
    if value is None or value == "":
        return None
    return str(value)


# ---------------------------------------------------------------------------
# Id lists
# ---------------------------------------------------------------------------

def unique_in_order(values: Iterable[Hashable]) -> list[Hashable]:
    """Deduplicate while keeping first-seen order."""
    return list(dict.fromkeys(values))
