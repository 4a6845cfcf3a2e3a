# logging_setup.py
from __future__ import annotations

import logging
import logging.config

LOGGER_NAME = "cartridge_import"

CONTEXT_KEYS = ("course_id", "artifact", "run")

# Attribute names a caller's extra= must not overwrite on a LogRecord.
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class DefaultContextFilter(logging.Filter):
    """Fill missing context keys with "-" so the format string never fails."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key in CONTEXT_KEYS:
            if not hasattr(record, key):
                setattr(record, key, "-")
        return True


def setup_logging(verbosity: int = 1) -> None:
    """
    Configure the cartridge_import logger on stderr.
    - INFO by default, DEBUG when verbosity >= 2
    - every line carries course, artifact and run, so one import can be grepped out
    """
    level = "DEBUG" if verbosity >= 2 else "INFO"
    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"context": {"()": DefaultContextFilter}},
        "formatters": {
            "line": {
                "format": "%(asctime)s %(levelname)s course=%(course_id)s "
                          "artifact=%(artifact)s run=%(run)s %(message)s",
            },
        },
        "handlers": {
            "stderr": {
                "class": "logging.StreamHandler",
                "formatter": "line",
                "filters": ["context"],
                "level": level,
            },
        },
        "loggers": {
            LOGGER_NAME: {"handlers": ["stderr"], "level": level, "propagate": False},
        },
    })


class ContextAdapter(logging.LoggerAdapter):
    """Bound context wins over per-call extra; clashing LogRecord names get a meta_ prefix."""

    def process(self, msg, kwargs):
        merged = {}
        for key, value in (kwargs.get("extra") or {}).items():
            merged[f"meta_{key}" if key in _RECORD_ATTRS else key] = value
        merged.update(self.extra)
        kwargs["extra"] = merged
        return msg, kwargs


def get_logger(*, artifact: str, course_id: int | str = "-", run: str = "-") -> logging.LoggerAdapter:
    """
    log = get_logger(artifact="files", course_id=101, run=run_id)
    log.info("merged attachment", extra={"migration_id": "I_00001_R"})
    """
    return ContextAdapter(
        logging.getLogger(LOGGER_NAME),
        {"artifact": artifact, "course_id": course_id, "run": run},
    )
