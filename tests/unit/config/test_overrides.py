"""
Unit tests for the custom shortform override loader.

Tests the YAML loading behavior of load_shortform_overrides() and the
case-insensitive lookup of ShortformOverrides.
"""

from pathlib import Path

import pytest

from invoice_numbering.config import (
    OVERRIDES_FILE_NAME,
    ShortformOverrideError,
    ShortformOverrides,
    load_shortform_overrides,
)


@pytest.fixture
def overrides_dir(tmp_path):
    """Create a temporary overrides directory for testing."""
    directory = tmp_path / "shortforms"
    directory.mkdir()
    return directory


def _write(directory: Path, content: str) -> Path:
    file_path = directory / OVERRIDES_FILE_NAME
    file_path.write_text(content, encoding="utf-8")
    return file_path


@pytest.mark.unit
class TestLoadShortformOverrides:
    def test_valid_file(self, overrides_dir):
        _write(
            overrides_dir,
            'Washington State University: WSU\n"St. Mary\'s College of Maryland": " SMCM "\n',
        )

        overrides = load_shortform_overrides(overrides_dir)

        assert len(overrides) == 2
        assert overrides.get("washington state university") == "WSU"
        assert overrides.get("  St. Mary's College of Maryland ") == "SMCM"

    def test_missing_file_is_empty(self, overrides_dir):
        overrides = load_shortform_overrides(overrides_dir)
        assert len(overrides) == 0

    def test_empty_file_is_empty(self, overrides_dir):
        _write(overrides_dir, "")
        assert len(load_shortform_overrides(overrides_dir)) == 0

    def test_invalid_yaml(self, overrides_dir):
        _write(overrides_dir, "key: [unclosed\n")

        with pytest.raises(ShortformOverrideError, match="Invalid YAML"):
            load_shortform_overrides(overrides_dir)

    def test_list_rejected(self, overrides_dir):
        _write(overrides_dir, "- WSU\n- OHSU\n")

        with pytest.raises(ShortformOverrideError, match="expected dict"):
            load_shortform_overrides(overrides_dir)

    def test_non_string_value_rejected(self, overrides_dir):
        _write(overrides_dir, "Acme: 123\n")

        with pytest.raises(ShortformOverrideError, match="string key/value"):
            load_shortform_overrides(overrides_dir)

    def test_error_is_value_error(self):
        assert issubclass(ShortformOverrideError, ValueError)

    def test_env_var_directory(self, overrides_dir, monkeypatch):
        _write(overrides_dir, "Acme Widgets Inc: ACME\n")
        monkeypatch.setenv("INVNUM_OVERRIDES_DIR", str(overrides_dir))

        assert load_shortform_overrides().get("ACME WIDGETS INC") == "ACME"

    def test_default_directory_independent_of_working_directory(self, monkeypatch, tmp_path):
        monkeypatch.delenv("INVNUM_OVERRIDES_DIR", raising=False)
        monkeypatch.chdir(tmp_path)

        assert load_shortform_overrides().get("Washington State University") == "WSU"

    def test_relative_env_var_resolved_against_project_root(self, monkeypatch, tmp_path):
        monkeypatch.setenv("INVNUM_OVERRIDES_DIR", "config/shortforms")
        monkeypatch.chdir(tmp_path)

        assert len(load_shortform_overrides()) == 2

    def test_shipped_file_loads(self):
        shipped = Path(__file__).resolve().parents[3] / "config" / "shortforms"
        overrides = load_shortform_overrides(shipped)
        assert overrides.get("Washington State University") == "WSU"


@pytest.mark.unit
class TestShortformOverrides:
    def test_lookup_misses(self):
        overrides = ShortformOverrides({"Acme": "ACM"})

        assert overrides.get(None) is None
        assert overrides.get("") is None
        assert overrides.get("Other") is None

    def test_contains(self):
        overrides = ShortformOverrides({"Acme": "ACM"})

        assert "ACME" in overrides
        assert 42 not in overrides
