"""Shared pytest configuration."""

import shutil
from pathlib import Path

import pytest

from src.utils.config import reset_settings
from src.utils.logging_config import reset_logging


@pytest.fixture(scope="session", autouse=True)
def backup_env_file():
    """Backup .env file during test session to prevent pollution."""
    env_file = Path(".env")
    backup_file = Path(".env.test_backup")

    # Backup if exists
    if env_file.exists():
        shutil.copy(env_file, backup_file)
        env_file.unlink()

    yield

    # Restore
    if backup_file.exists():
        shutil.move(backup_file, env_file)


@pytest.fixture(autouse=True)
def app_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    """Minimal environment so settings and loggers can be built in any test."""
    monkeypatch.setenv("APP_NAME", "test-app")
    monkeypatch.setenv("ENVIRONMENT", "development")
    monkeypatch.setenv("DATA_DIR", str(tmp_path / "data"))
    reset_settings()
    reset_logging()

    yield

    reset_settings()
    reset_logging()


@pytest.fixture
def sqlite_db():
    """In-memory SQLite database with the workflow tables created."""
    from src.database import db  # pylint: disable=import-outside-toplevel

    db.init_db("sqlite://")
    db.create_tables()

    yield db

    db.close_db()
