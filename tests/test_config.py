"""Tests for Settings environment handling."""

from gateway.config import Settings


class TestSettings:
    def test_defaults(self, monkeypatch):
        for key in ("PORT", "APP_ENV", "MOTHERDUCK_DATABASE", "MOTHERDUCK_ALIAS", "CORS_ORIGINS"):
            monkeypatch.delenv(key, raising=False)
        monkeypatch.setenv("MOTHERDUCK_TOKEN", "")
        s = Settings()
        assert s.PORT == 3000
        assert s.MOTHERDUCK_TOKEN is None
        assert s.MOTHERDUCK_DATABASE == "md:default"
        assert s.MOTHERDUCK_ALIAS == "md_db"
        assert s.CORS_ORIGINS == ["*"]
        assert not s.is_production

    def test_overrides(self, settings):
        s = settings(
            PORT="8080",
            APP_ENV="Production",
            MOTHERDUCK_TOKEN="tok",
            MOTHERDUCK_DATABASE="md:analytics",
            CORS_ORIGINS="http://a.com, http://b.com",
        )
        assert s.PORT == 8080
        assert s.is_production
        assert s.MOTHERDUCK_TOKEN == "tok"
        assert s.MOTHERDUCK_DATABASE == "md:analytics"
        assert s.CORS_ORIGINS == ["http://a.com", "http://b.com"]
