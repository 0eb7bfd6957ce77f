import logging

import pytest

from checklist.logging_setup import setup_logging
from checklist.settings import get_settings

_ENV_VARS = (
    "PERSISTENCE_BACKEND",
    "SQLITE_DB_PATH",
    "CORS_ALLOW_ORIGINS",
    "LOG_LEVEL",
    "LOG_FILE",
    "REMINDER_TITLE",
    "DELIVERY_INTERVAL_SECONDS",
)


@pytest.fixture()
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture()
def restore_root_logger():
    root = logging.getLogger()
    level, handlers = root.level, list(root.handlers)
    yield root
    for h in list(root.handlers):
        if h not in handlers:
            root.removeHandler(h)
            h.close()
    root.setLevel(level)
    logging.captureWarnings(False)


class TestGetSettings:
    def test_defaults(self, clean_env):
        settings = get_settings()
        assert settings.persistence_backend == "memory"
        assert settings.sqlite_db_path == "./data/tasks.db"
        assert settings.cors_allow_origins == ["*"]
        assert settings.log_level == logging.INFO
        assert settings.log_file is None
        assert settings.reminder_title == "Todo Reminder"
        assert settings.delivery_interval_seconds == 15.0

    def test_reads_environment(self, clean_env):
        clean_env.setenv("PERSISTENCE_BACKEND", " SQLite ")
        clean_env.setenv("SQLITE_DB_PATH", "/tmp/x.db")
        clean_env.setenv("CORS_ALLOW_ORIGINS", "http://a.test, http://b.test,")
        clean_env.setenv("LOG_LEVEL", "debug")
        clean_env.setenv("LOG_FILE", "logs/app.log")
        clean_env.setenv("REMINDER_TITLE", "Heads up")
        clean_env.setenv("DELIVERY_INTERVAL_SECONDS", "2.5")

        settings = get_settings()
        assert settings.persistence_backend == "sqlite"
        assert settings.sqlite_db_path == "/tmp/x.db"
        assert settings.cors_allow_origins == ["http://a.test", "http://b.test"]
        assert settings.log_level == logging.DEBUG
        assert settings.log_file == "logs/app.log"
        assert settings.reminder_title == "Heads up"
        assert settings.delivery_interval_seconds == 2.5

    def test_unknown_values_fall_back(self, clean_env):
        clean_env.setenv("PERSISTENCE_BACKEND", "postgres")
        clean_env.setenv("LOG_LEVEL", "chatty")
        clean_env.setenv("DELIVERY_INTERVAL_SECONDS", "-1")
        settings = get_settings()
        assert settings.persistence_backend == "memory"
        assert settings.log_level == logging.INFO
        assert settings.delivery_interval_seconds == 15.0


class TestSetupLogging:
    def test_repeated_calls_do_not_stack_handlers(self, restore_root_logger):
        setup_logging(logging.INFO)
        setup_logging(logging.INFO)
        ours = [h for h in restore_root_logger.handlers if getattr(h, "_checklist_handler", False)]
        assert len(ours) == 1

    def test_file_handler_receives_debug(self, restore_root_logger, tmp_path):
        log_file = tmp_path / "logs" / "checklist.log"
        setup_logging(logging.WARNING, str(log_file))

        logging.getLogger("checklist.test").debug("written to file only")
        for h in restore_root_logger.handlers:
            h.flush()

        assert "written to file only" in log_file.read_text(encoding="utf-8")
