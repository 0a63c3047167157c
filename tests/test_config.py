"""Tests for settings parsing and startup validation."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from pharmacy_directory.config import Settings


def test_log_level_is_normalized():
    assert Settings(log_level="debug").log_level == "DEBUG"


def test_unknown_log_level_rejected():
    with pytest.raises(PydanticValidationError):
        Settings(log_level="LOUD")


def test_cors_origins_split_and_trimmed():
    settings = Settings(cors_origins="http://a.example, http://b.example")
    assert settings.cors_origins_list == ["http://a.example", "http://b.example"]


def test_unique_email_read_from_environment(monkeypatch):
    monkeypatch.setenv("UNIQUE_EMAIL", "true")
    assert Settings().unique_email is True


def test_production_check_rejects_wildcard_cors():
    settings = Settings(database_url="sqlite+aiosqlite:///:memory:", cors_origins="*")
    with pytest.raises(ValueError, match="CORS_ORIGINS"):
        settings.validate_required_for_production()


def test_production_check_rejects_unsupported_backend():
    settings = Settings(database_url="mysql+aiomysql://u:p@localhost/db")
    with pytest.raises(ValueError, match="unsupported backend"):
        settings.validate_required_for_production()


def test_production_check_accepts_postgres():
    Settings(database_url="postgresql+asyncpg://u:p@localhost/db").validate_required_for_production()
