"""Unit tests for url_rewrite_import.config."""

from __future__ import annotations

import pytest

from url_rewrite_import.config import ImportProfile, load_profile
from url_rewrite_import.url_rewrite import ImportConfigError


def _write(tmp_path, text):
    p = tmp_path / "profile.yml"
    p.write_text(text, encoding="utf-8")
    return p


class TestLoadProfile:
    def test_full_profile(self, tmp_path):
        p = _write(tmp_path, (
            "behavior: replace\n"
            "bunch_size: 500\n"
            "validation_strategy: validation-skip-errors\n"
            "allowed_error_count: 25\n"
            "table: url_rewrite_staging\n"
        ))
        profile = load_profile(p)
        assert profile == ImportProfile(
            behavior="replace",
            bunch_size=500,
            validation_strategy="validation-skip-errors",
            allowed_error_count=25,
            table="url_rewrite_staging",
        )

    def test_empty_file_gives_defaults(self, tmp_path):
        assert load_profile(_write(tmp_path, "")) == ImportProfile()

    def test_unknown_key_rejected(self, tmp_path):
        with pytest.raises(ImportConfigError, match="Unknown profile keys"):
            load_profile(_write(tmp_path, "behaviour: append\n"))

    def test_non_mapping_root_rejected(self, tmp_path):
        with pytest.raises(ImportConfigError, match="mapping"):
            load_profile(_write(tmp_path, "- append\n"))

    def test_bad_behavior_rejected(self, tmp_path):
        with pytest.raises(ImportConfigError, match="Invalid behavior"):
            load_profile(_write(tmp_path, "behavior: upsert\n"))

    def test_non_numeric_bunch_size_rejected(self, tmp_path):
        with pytest.raises(ImportConfigError, match="Invalid profile value"):
            load_profile(_write(tmp_path, "bunch_size: lots\n"))

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_profile(tmp_path / "nope.yml")


class TestOverrides:
    def test_none_overrides_ignored(self):
        base = ImportProfile(behavior="delete", bunch_size=50)
        assert base.with_overrides(behavior=None, bunch_size=None) == base

    def test_override_applied(self):
        profile = ImportProfile().with_overrides(behavior="replace", allowed_error_count=0)
        assert profile.behavior == "replace"
        assert profile.allowed_error_count == 0

    def test_invalid_override_rejected(self):
        with pytest.raises(ImportConfigError, match="bunch_size"):
            ImportProfile().with_overrides(bunch_size=0)
