"""url_rewrite_import.validator

Per-row validation for URL-rewrite import rows.

Every check runs (no short-circuit) so a row reports all of its problems at
once. Errors are registered on the run's ErrorAggregator; the validator keeps
no verdicts of its own beyond which row numbers it has already seen.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from url_rewrite_import.error_aggregator import ErrorAggregator
from url_rewrite_import.normalize import redirect_type_text

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

VALID_REDIRECT_TYPES = ("0", "301", "302")

# (column, error code), in check order
REQUIRED_FIELDS: tuple[tuple[str, str], ...] = (
    ("entity_id", "EntityIdIsRequired"),
    ("request_path", "RequestPathIsRequired"),
    ("target_path", "TargetPathIsRequired"),
    ("store_id", "StoreIdIsRequired"),
)


def _is_blank(value: Any) -> bool:
    return value is None or str(value).strip() == ""


class RowValidator:
    def __init__(self, error_aggregator: ErrorAggregator) -> None:
        self.error_aggregator = error_aggregator
        self._validated_rows: set[int] = set()

    def validate(self, row: Mapping[str, Any], row_num: int) -> bool:
        """Validate row once per run; True iff the row is not invalid.

        A repeated call for the same row_num returns the aggregator's current
        verdict without registering anything again.
        """
        if row_num in self._validated_rows:
            return not self.error_aggregator.is_row_invalid(row_num)
        self._validated_rows.add(row_num)

        for column, code in REQUIRED_FIELDS:
            if _is_blank(row.get(column)):
                log.debug("%s at row %s", code, row_num)
                self.error_aggregator.add_row_error(code, row_num, column_name=column)

        redirect_type = redirect_type_text(row.get("redirect_type"))
        if redirect_type is None or redirect_type not in VALID_REDIRECT_TYPES:
            log.debug("RedirectTypeIsRequired at row %s (value=%r)", row_num, redirect_type)
            self.error_aggregator.add_row_error(
                "RedirectTypeIsRequired", row_num, column_name="redirect_type"
            )

        return not self.error_aggregator.is_row_invalid(row_num)

    def is_validated(self, row_num: int) -> bool:
        return row_num in self._validated_rows
