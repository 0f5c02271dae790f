#
# tests/unit/test_telemetry.py
#

import json
import logging

import pytest
import structlog

from catch2adapter.telemetry import setup_logging
from catch2adapter.telemetry.logger.processors import LOG_EMOJIS, add_emoji_processor, remove_extra_keys_processor


def test_emoji_key_wins_over_level() -> None:
    event_dict = {"event": "Loading tests", "level": "info", "emoji_key": "load"}
    result = add_emoji_processor(None, "info", event_dict)
    assert result["event"] == f"{LOG_EMOJIS['load']} Loading tests"


def test_level_emoji_is_the_fallback() -> None:
    result = add_emoji_processor(None, "warning", {"event": "Careful", "level": "warning"})
    assert result["event"] == f"{LOG_EMOJIS[logging.WARNING]} Careful"


def test_unknown_emoji_key_falls_back_to_level() -> None:
    result = add_emoji_processor(None, "error", {"event": "Broken", "level": "error", "emoji_key": "nope"})
    assert result["event"].startswith(LOG_EMOJIS[logging.ERROR])


def test_internal_keys_are_stripped() -> None:
    result = remove_extra_keys_processor(None, "info", {"event": "x", "emoji_key": "run", "suite": "a"})
    assert result == {"event": "x", "suite": "a"}


@pytest.fixture
def restore_logging():
    yield
    root = logging.getLogger()
    for handler in list(root.handlers):
        handler.close()
        root.removeHandler(handler)
    structlog.reset_defaults()


@pytest.mark.usefixtures("restore_logging")
def test_log_file_receives_json_lines(tmp_path) -> None:
    log_file = tmp_path / "adapter.log"
    setup_logging(level=logging.INFO, log_file=str(log_file), file_only=True)

    structlog.get_logger("catch2adapter.test").info("Run finished", emoji_key="run", suites=2)
    for handler in logging.getLogger().handlers:
        handler.flush()

    records = [json.loads(line) for line in log_file.read_text().splitlines() if line.strip()]
    finished = next(record for record in records if record["event"].endswith("Run finished"))
    assert finished["suites"] == 2
    assert "emoji_key" not in finished
    assert finished["level"] == "info"


# 🧪📜
