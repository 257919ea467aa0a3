"""url_rewrite_import.error_aggregator

Run-scoped registry of row errors.

Tracks which rows are invalid, which rows were skipped after the run was
told to terminate, and decides when the error threshold has been reached.

Validation strategies:
  validation-stop-on-errors  terminate once the non-critical error count
                             reaches allowed_error_count (default)
  validation-skip-errors     never terminate on row errors; invalid rows
                             are excluded and the run carries on

Critical errors (header / column problems) always terminate.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

STRATEGY_STOP_ON_ERRORS = "validation-stop-on-errors"
STRATEGY_SKIP_ERRORS = "validation-skip-errors"
VALID_STRATEGIES = (STRATEGY_STOP_ON_ERRORS, STRATEGY_SKIP_ERRORS)

LEVEL_CRITICAL = "critical"
LEVEL_NOT_CRITICAL = "not-critical"

DEFAULT_ALLOWED_ERROR_COUNT = 10

# Error code -> human message; the host localizes these.
MESSAGE_TEMPLATES: dict[str, str] = {
    "EntityTypeIsRequired": "The entity type cannot be empty.",
    "EntityIdIsRequired": "The entity ID cannot be empty.",
    "RequestPathIsRequired": "The request path cannot be empty.",
    "TargetPathIsRequired": "The target path cannot be empty.",
    "RedirectTypeIsRequired": "The redirect type cannot be empty.",
    "StoreIdIsRequired": "The store ID cannot be empty.",
    "InvalidAttributeName": "Column name is not recognized.",
    "PermanentAttributeIsMissing": "A required column is missing from the header.",
}

CRITICAL_CODES = frozenset({"InvalidAttributeName", "PermanentAttributeIsMissing"})


# ---------------------------------------------------------------------------
# ProcessingError
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProcessingError:
    code: str
    level: str
    row_num: int | None = None
    column_name: str | None = None
    message: str | None = None


# ---------------------------------------------------------------------------
# ErrorAggregator
# ---------------------------------------------------------------------------

class ErrorAggregator:
    """Collects row errors for one import run."""

    def __init__(
        self,
        validation_strategy: str = STRATEGY_STOP_ON_ERRORS,
        allowed_error_count: int = DEFAULT_ALLOWED_ERROR_COUNT,
    ) -> None:
        if validation_strategy not in VALID_STRATEGIES:
            raise ValueError(
                f"Invalid validation strategy {validation_strategy!r}. "
                f"Must be one of {list(VALID_STRATEGIES)}."
            )
        if allowed_error_count < 0:
            raise ValueError("allowed_error_count must be >= 0.")
        self.validation_strategy = validation_strategy
        self.allowed_error_count = allowed_error_count
        self._errors: list[ProcessingError] = []
        self._seen: set[tuple[str, int | None]] = set()
        self._errors_by_row: dict[int | None, list[ProcessingError]] = {}
        self._level_counts: Counter[str] = Counter()
        self._invalid_rows: set[int] = set()
        # ordered set: row number -> None, in skip order
        self._skipped_rows: dict[int, None] = {}

    # -- registration -------------------------------------------------------

    def add_row_error(
        self,
        code: str,
        row_num: int | None,
        column_name: str | None = None,
        message: str | None = None,
    ) -> None:
        """Register code against row_num.

        The same (code, row) pair is recorded once.
        """
        key = (code, row_num)
        if key in self._seen:
            return
        self._seen.add(key)
        level = LEVEL_CRITICAL if code in CRITICAL_CODES else LEVEL_NOT_CRITICAL
        error = ProcessingError(
            code=code,
            level=level,
            row_num=row_num,
            column_name=column_name,
            message=message or MESSAGE_TEMPLATES.get(code),
        )
        self._errors.append(error)
        self._errors_by_row.setdefault(row_num, []).append(error)
        self._level_counts[level] += 1
        if row_num is not None:
            self._invalid_rows.add(row_num)

    def add_row_to_skip(self, row_num: int) -> None:
        self._skipped_rows.setdefault(row_num, None)

    # -- queries ------------------------------------------------------------

    def is_row_invalid(self, row_num: int) -> bool:
        return row_num in self._invalid_rows or row_num in self._skipped_rows

    def has_fatal_errors(self) -> bool:
        return self._level_counts[LEVEL_CRITICAL] > 0

    def is_error_limit_exceeded(self) -> bool:
        if self.validation_strategy != STRATEGY_STOP_ON_ERRORS:
            return False
        count = self.get_errors_count(LEVEL_NOT_CRITICAL)
        return count > 0 and count >= self.allowed_error_count

    def has_to_be_terminated(self) -> bool:
        return self.has_fatal_errors() or self.is_error_limit_exceeded()

    def get_errors_count(self, level: str | None = None) -> int:
        if level is None:
            return len(self._errors)
        return self._level_counts[level]

    def get_invalid_rows_count(self) -> int:
        return len(self._invalid_rows)

    def get_skipped_rows(self) -> list[int]:
        return list(self._skipped_rows)

    def row_errors(self, row_num: int) -> list[ProcessingError]:
        return list(self._errors_by_row.get(row_num, ()))

    def general_errors(self) -> list[ProcessingError]:
        """Errors not tied to a row (header problems)."""
        return list(self._errors_by_row.get(None, ()))

    def errors_by_code(self) -> dict[str, int]:
        return dict(Counter(e.code for e in self._errors))

    @staticmethod
    def describe(code: str) -> str:
        return MESSAGE_TEMPLATES.get(code, code)
