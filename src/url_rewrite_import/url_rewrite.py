"""url_rewrite_import.url_rewrite

URL-rewrite import entity: validates raw rows bunch by bunch and reconciles
them against the url_rewrite table.

Behaviors:
  append   insert-or-update every valid row, one upsert per bunch
  replace  per bunch, delete every entity_id seen so far in the run, then
           upsert the bunch (only if that delete succeeded)
  delete   collect every valid entity_id across all bunches, then issue one
           delete at the end

Replace deliberately deletes the run-wide id list, not just the current
bunch's ids: bunch 2 deletes bunch 1's ids again before writing. A run that
fails mid-way leaves the table partially replaced; bunches are not rolled
back together.

Write faults from the gateway propagate. Delete faults are caught and
reported as a failed DeleteOutcome.

One UrlRewriteImport instance per run: it owns the counters, the validator
(and its validated-row cache) and the run-wide id list.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Hashable, Iterable, Sequence

from url_rewrite_import.bunch_source import BunchSource
from url_rewrite_import.error_aggregator import ErrorAggregator
from url_rewrite_import.gateway import PersistenceGateway
from url_rewrite_import.normalize import unique_in_order
from url_rewrite_import.shared import ImportCounters, RejectWriter
from url_rewrite_import.validator import RowValidator

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

ENTITY_CODE = "url_rewriteimport"
TABLE = "url_rewrite"
ENTITY_ID_COLUMN = "entity_id"

VALID_COLUMN_NAMES: tuple[str, ...] = (
    "entity_id",
    "request_path",
    "target_path",
    "redirect_type",
    "store_id",
)

PERMANENT_ATTRIBUTES: tuple[str, ...] = ("entity_id",)

# Secondary unique key of the url_rewrite table
UNIQUE_KEY_COLUMNS: tuple[str, ...] = ("request_path", "store_id")

BEHAVIOR_APPEND = "append"
BEHAVIOR_REPLACE = "replace"
BEHAVIOR_DELETE = "delete"
VALID_BEHAVIORS = (BEHAVIOR_APPEND, BEHAVIOR_REPLACE, BEHAVIOR_DELETE)

EntityGroup = dict[Any, list[dict[str, Any]]]


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class ImportConfigError(ValueError):
    """Raised for an unknown behavior or an otherwise unusable import setup."""


class HeaderValidationError(ValueError):
    """Raised when the source header cannot be imported."""


# ---------------------------------------------------------------------------
# DeleteOutcome
# ---------------------------------------------------------------------------

DELETE_OK = "deleted"
DELETE_NOT_ATTEMPTED = "not_attempted"
DELETE_FAILED = "failed"


@dataclass(frozen=True)
class DeleteOutcome:
    """Result of delete_entity_finish.

    Truthy only when the delete ran; a zero count with status "deleted" means
    nothing matched, status "failed" means the gateway raised.
    """

    status: str
    count: int = 0
    cause: Exception | None = None

    def __bool__(self) -> bool:
        return self.status == DELETE_OK

    @classmethod
    def success(cls, count: int) -> "DeleteOutcome":
        return cls(DELETE_OK, count=count)

    @classmethod
    def failed(cls, cause: Exception) -> "DeleteOutcome":
        return cls(DELETE_FAILED, cause=cause)

    @classmethod
    def not_attempted(cls) -> "DeleteOutcome":
        return cls(DELETE_NOT_ATTEMPTED)


# ---------------------------------------------------------------------------
# Header check
# ---------------------------------------------------------------------------

def validate_headers(
    fieldnames: Sequence[str],
    error_aggregator: ErrorAggregator,
    valid_column_names: Sequence[str] = VALID_COLUMN_NAMES,
    permanent_attributes: Sequence[str] = PERMANENT_ATTRIBUTES,
) -> None:
    """Register critical errors for unknown or missing columns.

    Raises HeaderValidationError listing every problem found.
    """
    problems: list[str] = []
    for name in fieldnames:
        if name not in valid_column_names:
            error_aggregator.add_row_error("InvalidAttributeName", None, column_name=name)
            problems.append(f"unknown column {name!r}")
    for name in permanent_attributes:
        if name not in fieldnames:
            error_aggregator.add_row_error("PermanentAttributeIsMissing", None, column_name=name)
            problems.append(f"missing column {name!r}")
    if problems:
        raise HeaderValidationError("; ".join(problems))


# ---------------------------------------------------------------------------
# UrlRewriteImport
# ---------------------------------------------------------------------------

class UrlRewriteImport:
    def __init__(
        self,
        source: BunchSource,
        gateway: PersistenceGateway,
        error_aggregator: ErrorAggregator | None = None,
        behavior: str = BEHAVIOR_APPEND,
        table: str = TABLE,
        rejects: RejectWriter | None = None,
        counters: ImportCounters | None = None,
    ) -> None:
        if behavior not in VALID_BEHAVIORS:
            raise ImportConfigError(
                f"Invalid behavior {behavior!r}. Must be one of {list(VALID_BEHAVIORS)}."
            )
        self.source = source
        self.gateway = gateway
        self.error_aggregator = error_aggregator or ErrorAggregator()
        self.validator = RowValidator(self.error_aggregator)
        self.behavior = behavior
        self.table = table
        self.rejects = rejects
        self.counters = counters or ImportCounters()
        # Every entity_id accepted so far in this run; grows across bunches.
        self.entity_ids: list[Any] = []

    # -- declared schema ----------------------------------------------------

    def get_entity_type_code(self) -> str:
        return ENTITY_CODE

    def get_valid_column_names(self) -> list[str]:
        return list(VALID_COLUMN_NAMES)

    def get_available_columns(self) -> list[str]:
        return list(VALID_COLUMN_NAMES)

    # -- entry point --------------------------------------------------------

    def import_data(self) -> bool:
        if self.behavior == BEHAVIOR_DELETE:
            self.delete_entity()
        else:
            self.save_and_replace_entity()
        return True

    # -- validation ---------------------------------------------------------

    def validate_row(self, row: dict[str, Any], row_num: int) -> bool:
        return self.validator.validate(row, row_num)

    def _validate_and_track(self, row: dict[str, Any], row_num: int) -> bool:
        first_time = not self.validator.is_validated(row_num)
        ok = self.validate_row(row, row_num)
        if not ok and first_time:
            self.counters.rows_invalid += 1
            if self.rejects is not None:
                codes = ",".join(e.code for e in self.error_aggregator.row_errors(row_num))
                self.rejects.write(row, codes or "invalid", row_num=row_num)
        return ok

    def _skip(self, row: dict[str, Any], row_num: int) -> None:
        already_rejected = self.error_aggregator.is_row_invalid(row_num)
        self.error_aggregator.add_row_to_skip(row_num)
        if already_rejected:
            return
        self.counters.rows_skipped += 1
        if self.rejects is not None:
            self.rejects.write(row, "skipped_after_termination", row_num=row_num)

    # -- delete -------------------------------------------------------------

    def delete_entity(self) -> bool:
        log.info("Starting delete run on %s", self.table)
        ids: list[Any] = []
        while True:
            bunch = self.source.get_next_bunch()
            if not bunch:
                break
            self.counters.bunches_processed += 1
            for row_num, row in bunch.items():
                self.counters.rows_read += 1
                self._validate_and_track(row, row_num)

                if not self.error_aggregator.is_row_invalid(row_num):
                    row_id = row.get(ENTITY_ID_COLUMN)
                    ids.append(row_id)
                    log.debug("Deleting entity %s", row_id)

                if self.error_aggregator.has_to_be_terminated():
                    self._skip(row, row_num)

        if ids:
            return bool(self.delete_entity_finish(unique_in_order(ids)))
        return False

    # -- append / replace ---------------------------------------------------

    def save_and_replace_entity(self) -> None:
        log.info("Starting %s run on %s", self.behavior, self.table)
        columns = self.get_available_columns()
        while True:
            bunch = self.source.get_next_bunch()
            if not bunch:
                break
            self.counters.bunches_processed += 1
            entity_list: EntityGroup = {}

            for row_num, row in bunch.items():
                self.counters.rows_read += 1
                if not self._validate_and_track(row, row_num):
                    continue

                if self.error_aggregator.has_to_be_terminated():
                    self._skip(row, row_num)
                    continue

                row_id = row.get(ENTITY_ID_COLUMN)
                self.entity_ids.append(row_id)
                column_values = {c: row.get(c) for c in columns}
                entity_list.setdefault(row_id, []).append(column_values)
                if row_id is None:
                    self.counters.created += 1
                else:
                    self.counters.updated += 1
                log.debug("Saving entity %s", column_values)

            if self.behavior == BEHAVIOR_REPLACE:
                if self.entity_ids and self.delete_entity_finish(
                    unique_in_order(self.entity_ids)
                ):
                    self.save_entity_finish(entity_list)
            elif self.behavior == BEHAVIOR_APPEND:
                self.save_entity_finish(entity_list)

            log.info(
                "Bunch %s done: %s row(s), created=%s updated=%s deleted=%s",
                self.counters.bunches_processed,
                len(bunch),
                self.counters.created,
                self.counters.updated,
                self.counters.deleted,
            )

    # -- persistence --------------------------------------------------------

    def save_entity_finish(self, entity_data: EntityGroup) -> bool:
        """Flatten the group and upsert it in one gateway call.

        False when there is nothing to write. Gateway faults propagate.
        """
        if not entity_data:
            return False
        rows = [row for entity_rows in entity_data.values() for row in entity_rows]
        if not rows:
            return False
        written = self.gateway.insert_on_duplicate(
            self.table, rows, self.get_available_columns()
        )
        self.counters.rows_written += written
        return True

    def delete_entity_finish(self, entity_ids: Iterable[Hashable]) -> DeleteOutcome:
        ids = list(entity_ids)
        if not ids:
            return DeleteOutcome.not_attempted()
        try:
            count = self.gateway.delete(self.table, ENTITY_ID_COLUMN, ids)
        except Exception as e:
            log.warning("Delete of %s id(s) from %s failed: %s", len(ids), self.table, e)
            self.counters.delete_failures += 1
            self.counters.warnings.append(f"delete failed for {len(ids)} id(s): {e}")
            return DeleteOutcome.failed(e)
        self.counters.deleted += count
        return DeleteOutcome.success(count)
