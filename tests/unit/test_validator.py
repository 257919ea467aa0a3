"""Unit tests for url_rewrite_import.validator."""

from __future__ import annotations

import pytest

from url_rewrite_import.error_aggregator import STRATEGY_SKIP_ERRORS, ErrorAggregator
from url_rewrite_import.validator import RowValidator


def _valid_row(**overrides):
    row = {
        "entity_id": "12",
        "request_path": "old-category/shoes.html",
        "target_path": "shoes.html",
        "redirect_type": "301",
        "store_id": "1",
    }
    row.update(overrides)
    return row


@pytest.fixture
def aggregator():
    return ErrorAggregator(validation_strategy=STRATEGY_SKIP_ERRORS)


@pytest.fixture
def validator(aggregator):
    return RowValidator(aggregator)


def _codes(aggregator, row_num):
    return [e.code for e in aggregator.row_errors(row_num)]


# ---------------------------------------------------------------------------
# Valid rows
# ---------------------------------------------------------------------------

class TestValidRows:
    def test_valid_row_passes_without_errors(self, validator, aggregator):
        assert validator.validate(_valid_row(), 0) is True
        assert aggregator.get_errors_count() == 0

    @pytest.mark.parametrize("redirect_type", ["0", "301", "302", 0, 301, 302])
    def test_each_redirect_type_accepted(self, validator, redirect_type):
        assert validator.validate(_valid_row(redirect_type=redirect_type), 0) is True

    @pytest.mark.parametrize("store_id", ["0", 0])
    def test_store_zero_is_present(self, validator, store_id):
        assert validator.validate(_valid_row(store_id=store_id), 0) is True


# ---------------------------------------------------------------------------
# Missing fields
# ---------------------------------------------------------------------------

class TestMissingFields:
    @pytest.mark.parametrize("column,code", [
        ("entity_id", "EntityIdIsRequired"),
        ("request_path", "RequestPathIsRequired"),
        ("target_path", "TargetPathIsRequired"),
        ("store_id", "StoreIdIsRequired"),
    ])
    def test_missing_field_registers_its_code(self, validator, aggregator, column, code):
        assert validator.validate(_valid_row(**{column: None}), 3) is False
        assert _codes(aggregator, 3) == [code]

    def test_blank_string_counts_as_missing(self, validator, aggregator):
        assert validator.validate(_valid_row(request_path="   "), 0) is False
        assert _codes(aggregator, 0) == ["RequestPathIsRequired"]

    def test_absent_key_counts_as_missing(self, validator, aggregator):
        row = _valid_row()
        del row["target_path"]
        assert validator.validate(row, 0) is False
        assert _codes(aggregator, 0) == ["TargetPathIsRequired"]

    def test_all_checks_run_in_order(self, validator, aggregator):
        assert validator.validate({}, 7) is False
        assert _codes(aggregator, 7) == [
            "EntityIdIsRequired",
            "RequestPathIsRequired",
            "TargetPathIsRequired",
            "StoreIdIsRequired",
            "RedirectTypeIsRequired",
        ]


# ---------------------------------------------------------------------------
# Redirect type
# ---------------------------------------------------------------------------

class TestRedirectType:
    @pytest.mark.parametrize("value", [None, "", "303", "301.0", "permanent", 404])
    def test_rejected_values(self, validator, aggregator, value):
        assert validator.validate(_valid_row(redirect_type=value), 0) is False
        assert _codes(aggregator, 0) == ["RedirectTypeIsRequired"]


# ---------------------------------------------------------------------------
# Idempotence
# ---------------------------------------------------------------------------

class TestRevalidation:
    def test_errors_registered_once(self, validator, aggregator):
        row = _valid_row(entity_id=None, store_id=None)
        first = validator.validate(row, 5)
        second = validator.validate(row, 5)
        assert first is second is False
        assert aggregator.get_errors_count() == 2

    def test_second_call_uses_cached_verdict(self, validator, aggregator):
        assert validator.validate(_valid_row(), 1) is True
        # A different payload under the same row number is not looked at again.
        assert validator.validate({}, 1) is True
        assert aggregator.get_errors_count() == 0

    def test_verdict_tracks_later_skip(self, validator, aggregator):
        assert validator.validate(_valid_row(), 2) is True
        aggregator.add_row_to_skip(2)
        assert validator.validate(_valid_row(), 2) is False

    def test_is_validated(self, validator):
        assert validator.is_validated(0) is False
        validator.validate(_valid_row(), 0)
        assert validator.is_validated(0) is True
