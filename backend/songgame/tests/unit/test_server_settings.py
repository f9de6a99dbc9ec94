import pytest
from pydantic import ValidationError

from songgame.server.settings import GameServerSettings


class TestGameServerSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("SONGGAME_CORS_ORIGINS", raising=False)
        settings = GameServerSettings()
        assert settings.cors_origins == ["http://localhost:5173"]
        assert settings.room_ttl_seconds == 3600
        assert settings.lyrics_max_variants == 3
        assert settings.verify_submissions is True

    def test_cors_origins_json_array(self, monkeypatch):
        monkeypatch.setenv("SONGGAME_CORS_ORIGINS", '["http://a.com","http://b.com"]')
        settings = GameServerSettings()
        assert settings.cors_origins == ["http://a.com", "http://b.com"]

    def test_cors_origins_csv(self, monkeypatch):
        monkeypatch.setenv("SONGGAME_CORS_ORIGINS", "http://a.com,http://b.com")
        settings = GameServerSettings()
        assert settings.cors_origins == ["http://a.com", "http://b.com"]

    def test_cors_origins_invalid_raises(self, monkeypatch):
        monkeypatch.setenv("SONGGAME_CORS_ORIGINS", "")
        with pytest.raises(ValidationError, match="cors_origins"):
            GameServerSettings()

    def test_numeric_env_override(self, monkeypatch):
        monkeypatch.setenv("SONGGAME_ROOM_TTL_SECONDS", "120")
        monkeypatch.setenv("SONGGAME_VERIFY_SUBMISSIONS", "false")
        settings = GameServerSettings()
        assert settings.room_ttl_seconds == 120
        assert settings.verify_submissions is False

    def test_room_ttl_too_short_rejected(self):
        with pytest.raises(ValidationError, match="room_ttl_seconds"):
            GameServerSettings(room_ttl_seconds=10)

    def test_round_duration_out_of_range_rejected(self):
        with pytest.raises(ValidationError, match="default_round_duration"):
            GameServerSettings(default_round_duration=90)

    def test_too_many_artist_variants_rejected(self):
        with pytest.raises(ValidationError, match="lyrics_max_variants"):
            GameServerSettings(lyrics_max_variants=5)

    def test_log_dir_empty_rejected(self):
        with pytest.raises(ValidationError, match="log_dir"):
            GameServerSettings(log_dir="")
