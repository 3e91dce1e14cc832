"""Tests for settings validation and logging setup."""

import json
import logging

import pytest
from pydantic import ValidationError

from hookah_harvester.config import Settings
from hookah_harvester.logging_config import get_logger, setup_logging


class TestSettings:
    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.base_url == "https://htreviews.org"
        assert settings.page_size == 20
        assert settings.api_endpoint == "/postData"
        assert settings.enable_api_extraction and settings.enable_api_fallback

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("HARVESTER_MAX_RETRIES", "5")
        monkeypatch.setenv("HARVESTER_ENABLE_API_FALLBACK", "false")
        monkeypatch.setenv("HARVESTER_BASE_URL", "https://mirror.example/")

        settings = Settings(_env_file=None)

        assert settings.max_retries == 5
        assert settings.enable_api_fallback is False
        assert settings.base_url == "https://mirror.example"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"base_url": "htreviews.org"},
            {"page_size": 0},
            {"api_flavors_per_request": 0},
            {"max_retries": -1},
            {"request_delay_seconds": -0.5},
            {"cache_default_ttl_seconds": -1},
        ],
    )
    def test_rejects_bad_values(self, overrides):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, **overrides)


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    for handler in root.handlers:
        handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def test_setup_logging_writes_json_and_error_files(tmp_path, restore_root_logger):
    setup_logging(tmp_path, level="debug")

    logging.getLogger("hookah_harvester.test").info("brand scraped", extra={"brand": "sarma"})
    logging.getLogger("hookah_harvester.test").error("brand failed")
    for handler in restore_root_logger.handlers:
        handler.flush()

    lines = (tmp_path / "logs" / "harvester.log").read_text(encoding="utf-8").splitlines()
    records = [json.loads(line) for line in lines]
    assert records[0]["message"] == "brand scraped"
    assert records[0]["brand"] == "sarma"
    assert records[0]["level"] == "INFO"
    assert records[0]["logger"] == "hookah_harvester.test"

    errors = (tmp_path / "logs" / "error.log").read_text(encoding="utf-8").splitlines()
    assert [json.loads(line)["message"] for line in errors] == ["brand failed"]


def test_get_logger_attaches_context(caplog):
    log = get_logger("hookah_harvester.test", brand="sarma")

    with caplog.at_level(logging.INFO, logger="hookah_harvester.test"):
        log.info("scraping", extra={"page": 2})

    record = caplog.records[-1]
    assert record.brand == "sarma"
    assert record.page == 2
