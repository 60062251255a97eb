from chatsync.core.config import Settings


def test_default_database_url_is_local_sqlite(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    settings = Settings(_env_file=None)
    assert settings.DATABASE_URL == "sqlite:///./chatsync.db"


def test_sync_timing_defaults(monkeypatch):
    monkeypatch.delenv("SYNC_GUARD_INTERVAL_MS", raising=False)
    monkeypatch.delenv("SYNC_SETTLE_DELAY_MS", raising=False)
    settings = Settings(_env_file=None)
    assert settings.SYNC_GUARD_INTERVAL_MS == 2000
    assert settings.SYNC_SETTLE_DELAY_MS == 1000
    assert settings.ACCESS_TOKEN_EXPIRE_MINUTES == 60 * 24 * 7


def test_cors_origins_accepts_comma_separated():
    settings = Settings(_env_file=None, CORS_ORIGINS="http://a.test, http://b.test")
    assert settings.CORS_ORIGINS == ["http://a.test", "http://b.test"]
