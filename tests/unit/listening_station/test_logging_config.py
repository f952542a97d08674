"""Unit tests for logging configuration."""

import logging

from listening_station.logging_config import StationConsoleFormatter, get_logger, setup_logging


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("listening_station.test", logging.INFO, __file__, 1, "Playback stopped", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_console_formatter_appends_playback_context():
    formatter = StationConsoleFormatter("%(levelname)s %(message)s")

    line = formatter.format(_record(event_type="playback_stopped", epoch=3, ignored="x"))

    assert line == "INFO Playback stopped [event_type=playback_stopped epoch=3]"


def test_console_formatter_without_context_is_plain():
    formatter = StationConsoleFormatter("%(levelname)s %(message)s")

    assert formatter.format(_record()) == "INFO Playback stopped"


def test_setup_logging_writes_json_file(tmp_path):
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        setup_logging("DEBUG", log_dir=tmp_path)

        assert (tmp_path / "station.log").exists()
        assert any(isinstance(h.formatter, StationConsoleFormatter) for h in root.handlers)
        assert logging.getLogger("httpx").level == logging.WARNING
        assert get_logger("listening_station.x").name == "listening_station.x"
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
