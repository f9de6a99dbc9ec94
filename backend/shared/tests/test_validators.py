import pytest
from pydantic_settings import BaseSettings

from shared.validators import StringListEnvSettingsSource, parse_string_list


class TestParseStringList:
    @pytest.mark.parametrize(
        "raw",
        [
            '["http://a.com","http://b.com"]',
            "http://a.com,http://b.com",
            " http://a.com , http://b.com ",
            "http://a.com,,http://b.com,",
            ["http://a.com", "http://b.com"],
        ],
    )
    def test_accepted_forms(self, raw):
        assert parse_string_list(raw) == ["http://a.com", "http://b.com"]

    @pytest.mark.parametrize("raw", ["", "   ", ",", ",,,", "[]", []])
    def test_empty_rejected(self, raw):
        with pytest.raises(ValueError, match="must not be empty"):
            parse_string_list(raw)

    @pytest.mark.parametrize("raw", ["", "[]", []])
    def test_empty_allowed_when_requested(self, raw):
        assert parse_string_list(raw, allow_empty=True) == []

    def test_invalid_json_raises(self):
        with pytest.raises(ValueError, match="Invalid JSON array"):
            parse_string_list("[not valid json")

    def test_non_string_items_raise(self):
        with pytest.raises(ValueError, match="must be an array of strings"):
            parse_string_list('["http://a.com", 123]')


class _OriginsSettings(BaseSettings):
    model_config = {"env_prefix": "TEST_"}

    cors_origins: list[str] = []
    ports: list[int] = []


class TestStringListEnvSettingsSource:
    def test_string_list_field_keeps_raw_value(self, monkeypatch):
        monkeypatch.setenv("TEST_CORS_ORIGINS", "http://a.com,http://b.com")
        source = StringListEnvSettingsSource(_OriginsSettings)
        assert source()["cors_origins"] == "http://a.com,http://b.com"

    def test_other_list_fields_are_json_decoded(self, monkeypatch):
        monkeypatch.setenv("TEST_PORTS", "[1, 2]")
        source = StringListEnvSettingsSource(_OriginsSettings)
        assert source()["ports"] == [1, 2]
