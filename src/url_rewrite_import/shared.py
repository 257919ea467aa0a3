"""url_rewrite_import.shared

Run-level helpers shared by the importer and the CLI: RejectWriter,
ImportCounters, and report writing.
"""

from __future__ import annotations

import csv
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


# ---------------------------------------------------------------------------
# RejectWriter
# ---------------------------------------------------------------------------

class RejectWriter:
    """Lazy-open CSV writer for rejected rows."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._fh = None
        self._writer = None
        self.rows_written = 0

    def write(self, row: dict[str, Any], reason: str, row_num: int | None = None) -> None:
        if self._fh is None:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._fh = open(self._path, "w", newline="", encoding="utf-8")
            fieldnames = ["_row_num"] + list(row.keys()) + ["_reject_reason"]
            self._writer = csv.DictWriter(
                self._fh, fieldnames=fieldnames, extrasaction="ignore"
            )
            self._writer.writeheader()
        out = dict(row)
        out["_row_num"] = row_num
        out["_reject_reason"] = reason
        self._writer.writerow(out)
        self._fh.flush()
        self.rows_written += 1

    def close(self) -> None:
        if self._fh:
            self._fh.close()


# ---------------------------------------------------------------------------
# ImportCounters
# ---------------------------------------------------------------------------

@dataclass
class ImportCounters:
    # created/updated follow the raw row shape (entity_id absent vs present),
    # not what the database actually did
    created: int = 0
    updated: int = 0
    deleted: int = 0
    rows_read: int = 0
    rows_invalid: int = 0
    rows_skipped: int = 0
    rows_written: int = 0
    bunches_processed: int = 0
    delete_failures: int = 0
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "created": self.created,
            "updated": self.updated,
            "deleted": self.deleted,
            "rows_read": self.rows_read,
            "rows_invalid": self.rows_invalid,
            "rows_skipped": self.rows_skipped,
            "rows_written": self.rows_written,
            "bunches_processed": self.bunches_processed,
            "delete_failures": self.delete_failures,
            "warnings": self.warnings[:50],
        }


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------

def build_import_report(
    ctrs: ImportCounters,
    behavior: str,
    errors_by_code: dict[str, int] | None = None,
    dry_run: bool = False,
) -> str:
    lines = [
        "=" * 60,
        "URL Rewrite Import Report",
        f"  behavior: {behavior}",
        f"  dry_run: {dry_run}",
        "=" * 60,
        f"  rows read:            {ctrs.rows_read}",
        f"  bunches processed:    {ctrs.bunches_processed}",
        f"  invalid rows:         {ctrs.rows_invalid}",
        f"  skipped rows:         {ctrs.rows_skipped}",
        f"  created:              {ctrs.created}",
        f"  updated:              {ctrs.updated}",
        f"  deleted:              {ctrs.deleted}",
        f"  rows written:         {ctrs.rows_written}",
        f"  delete failures:      {ctrs.delete_failures}",
    ]
    if errors_by_code:
        lines.append("\nErrors by code:")
        for code, count in sorted(errors_by_code.items()):
            lines.append(f"  {code}: {count}")
    if ctrs.warnings:
        lines.append(f"\nWarnings ({len(ctrs.warnings)}):")
        for w in ctrs.warnings[:20]:
            lines.append(f"  {w}")
        if len(ctrs.warnings) > 20:
            lines.append(f"  ... and {len(ctrs.warnings) - 20} more")
    lines.append("=" * 60)
    return "\n".join(lines)


def write_run_report(
    run_id: str,
    started_at: str,
    behavior: str,
    dry_run: bool,
    source_paths: dict[str, str],
    counters: ImportCounters,
    errors_by_code: dict[str, int] | None = None,
    report_dir: Path = Path("./artifacts/reports"),
) -> Path:
    report = {
        "run_id": run_id,
        "behavior": behavior,
        "started_at": started_at,
        "finished_at": datetime.now(timezone.utc).isoformat(),
        "dry_run": dry_run,
        **source_paths,
        "counters": counters.to_dict(),
        "errors_by_code": errors_by_code or {},
    }
    report_path = report_dir / f"{run_id}.json"
    report_path.parent.mkdir(parents=True, exist_ok=True)
    report_path.write_text(json.dumps(report, indent=2, default=str))
    return report_path
