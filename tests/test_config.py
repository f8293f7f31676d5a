"""Tests for environment-driven settings and logging setup."""

import json
import logging

import pytest
from pydantic import ValidationError

from config import JsonLineFormatter, Settings, configure_logging, get_settings


def test_defaults() -> None:
    settings = Settings(_env_file=None)
    assert settings.catalog_path == "data/deviceList.json"
    assert settings.match_threshold == 0.4
    assert settings.default_top_n == 20
    assert settings.price_buffer_threshold == 20000
    assert settings.log_level == "INFO"


def test_environment_overrides(monkeypatch) -> None:
    monkeypatch.setenv("CATALOG_PATH", "/srv/catalog.json")
    monkeypatch.setenv("DEFAULT_TOP_N", "5")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = get_settings()

    assert settings.catalog_path == "/srv/catalog.json"
    assert settings.default_top_n == 5
    assert settings.log_level == "DEBUG"
    assert get_settings() is settings


@pytest.mark.parametrize("field", ["log_level", "log_format"])
def test_rejects_unknown_logging_options(field: str) -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **{field: "verbose"})


def test_cors_origin_list() -> None:
    settings = Settings(_env_file=None, cors_origins=" https://a.example , ,https://b.example")
    assert settings.cors_origin_list == ["https://a.example", "https://b.example"]


def test_json_formatter_emits_one_object() -> None:
    record = logging.LogRecord("engine", logging.WARNING, __file__, 1, "loaded %d", (3,), None)
    payload = json.loads(JsonLineFormatter().format(record))
    assert payload["level"] == "warning"
    assert payload["logger"] == "engine"
    assert payload["message"] == "loaded 3"
    assert "timestamp" in payload


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()
    for h in handlers:
        root.addHandler(h)
    root.setLevel(level)


def test_configure_logging_adds_error_file(tmp_path, restore_root_logger) -> None:
    log_file = tmp_path / "errors.log"
    settings = Settings(_env_file=None, log_level="WARNING", log_file=str(log_file))

    configure_logging(settings)

    root = restore_root_logger
    assert root.level == logging.WARNING
    assert len(root.handlers) == 2
    file_handler = next(h for h in root.handlers if isinstance(h, logging.FileHandler))
    assert file_handler.level == logging.ERROR

    logging.getLogger("engine").error("catalog missing")
    file_handler.flush()
    line = log_file.read_text(encoding="utf-8").strip()
    assert json.loads(line)["message"] == "catalog missing"
