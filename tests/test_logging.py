# tests/test_logging.py
import io
import logging

import logging_setup
from logging_setup import LOGGER_NAME, DefaultContextFilter, get_logger, setup_logging


def _stream_handler():
    """Swap the configured stderr handler's stream for a buffer we can read."""
    handler = logging.getLogger(LOGGER_NAME).handlers[0]
    buf = io.StringIO()
    handler.setStream(buf)
    return buf


def test_formatted_line_carries_context():
    setup_logging(verbosity=1)
    buf = _stream_handler()

    get_logger(artifact="files", course_id=101, run="abc123").info("merged %d attachment(s)", 3)
    logging.getLogger(LOGGER_NAME).info("no adapter here")
    get_logger(artifact="modules").debug("hidden at INFO")

    lines = buf.getvalue().splitlines()
    assert len(lines) == 2
    assert "INFO course=101 artifact=files run=abc123 merged 3 attachment(s)" in lines[0]
    assert "course=- artifact=- run=- no adapter here" in lines[1]


def test_verbose_enables_debug():
    setup_logging(verbosity=2)
    buf = _stream_handler()
    get_logger(artifact="modules", course_id=7).debug("position %d", 2)
    assert "DEBUG course=7 artifact=modules run=- position 2" in buf.getvalue()


def test_filter_fills_missing_keys():
    record = logging.makeLogRecord({"msg": "bare"})
    assert DefaultContextFilter().filter(record) is True
    assert (record.course_id, record.artifact, record.run) == ("-", "-", "-")


def test_extra_keys_merge_under_bound_context(caplog):
    log = get_logger(artifact="files", course_id=7)
    with caplog.at_level(logging.INFO, logger=LOGGER_NAME):
        log.info("hello", extra={"filename": "dog.jpg", "artifact": "ignored", "migration_id": "I_media_R"})

    rec = caplog.records[-1]
    assert rec.meta_filename == "dog.jpg"
    assert rec.artifact == "files"
    assert rec.migration_id == "I_media_R"
    assert "message" in logging_setup._RECORD_ATTRS
