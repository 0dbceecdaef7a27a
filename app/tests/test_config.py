"""
Tests for configuration validation and engine options
"""
import pytest
from pydantic import ValidationError
from app.core.config import Settings
from app.db.session import build_engine_kwargs


def _settings(**overrides) -> Settings:
    values = {
        "DATABASE_URL": "postgresql://hr:secret@db:5432/hr",
        "JWT_SECRET_KEY": "a" * 32,
    }
    values.update(overrides)
    return Settings(**values)


def test_prod_settings_rejects_wildcard_origins():
    """Production requires explicit CORS origins"""
    settings = _settings(APP_ENV="prod", ALLOWED_ORIGINS="*")

    with pytest.raises(ValueError, match="ALLOWED_ORIGINS"):
        settings.validate_production()


def test_prod_settings_rejects_short_jwt_secret():
    settings = _settings(APP_ENV="prod", JWT_SECRET_KEY="short", ALLOWED_ORIGINS="https://hr.example.com")

    with pytest.raises(ValueError, match="JWT_SECRET_KEY"):
        settings.validate_production()


def test_unknown_app_env_rejected():
    with pytest.raises(ValidationError):
        _settings(APP_ENV="qa")


def test_log_level_is_normalised():
    assert _settings(LOG_LEVEL="debug").LOG_LEVEL == "DEBUG"


def test_allowed_origins_parsing():
    assert _settings(ALLOWED_ORIGINS="*").get_allowed_origins_list() == ["*"]

    origins = _settings(
        ALLOWED_ORIGINS="https://example.com, https://app.example.com,"
    ).get_allowed_origins_list()
    assert origins == ["https://example.com", "https://app.example.com"]


def test_postgres_engine_is_bounded_by_timeouts():
    kwargs = build_engine_kwargs("postgresql://hr:secret@db:5432/hr")

    assert kwargs["pool_pre_ping"] is True
    assert kwargs["pool_timeout"] > 0
    assert kwargs["connect_args"]["connect_timeout"] > 0
    assert kwargs["connect_args"]["options"].startswith("-c statement_timeout=")


def test_sqlite_engine_gets_busy_timeout():
    kwargs = build_engine_kwargs("sqlite:///./hr.db")

    assert kwargs["connect_args"]["check_same_thread"] is False
    assert kwargs["connect_args"]["timeout"] > 0
    assert "pool_timeout" not in kwargs


def test_prod_settings_require_postgres():
    settings = _settings(
        APP_ENV="prod", DATABASE_URL="sqlite:///./hr.db", ALLOWED_ORIGINS="https://hr.example.com"
    )

    with pytest.raises(ValueError, match="PostgreSQL"):
        settings.validate_production()


def test_unsupported_database_backend_rejected():
    with pytest.raises(ValidationError):
        _settings(DATABASE_URL="mysql://hr@db/hr")


def test_default_page_size_cannot_exceed_max():
    with pytest.raises(ValidationError):
        _settings(DEFAULT_PAGE_SIZE=50, MAX_PAGE_SIZE=20)
