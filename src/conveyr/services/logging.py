from __future__ import annotations
import json
import logging
from logging.handlers import RotatingFileHandler
from typing import Any, Optional

from conveyr.config import const
from conveyr.domain import ActionResult, Event
from conveyr.ports import EventBus
from conveyr.services.eventbus import topic_name
from conveyr.services.settings import Settings

LOGGER_NAME = "conveyr"


def _jsonable(value: Any) -> Any:
    if isinstance(value, ActionResult):
        return {
            "action_id": value.action_id,
            "instance_id": value.instance_id,
            "ok": value.was_successful,
            "error": repr(value.error) if value.error is not None else None,
        }
    if isinstance(value, BaseException):
        return repr(value)
    return value


def _json_formatter(record: logging.LogRecord) -> str:
    base = {
        "level": record.levelname,
        "logger": record.name,
        "msg": record.getMessage(),
        "time": getattr(record, "asctime", None),
    }
    if hasattr(record, "extra"):
        extra = record.extra  # type: ignore[attr-defined]
        if isinstance(extra, dict):
            base.update(extra)
    return json.dumps(base, ensure_ascii=False, default=repr)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        record.asctime = self.formatTime(record)
        return _json_formatter(record)


def setup_logging(settings: Optional[Settings] = None) -> logging.Logger:
    """
    Настройка логов:
      - консоль (stderr)
      - файл settings.log_file (ротация), если задан
    JSON формат, чтобы легко парсить.
    """
    settings = settings or Settings()
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()

    formatter: logging.Formatter
    if settings.json_logs:
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")

    stream_h = logging.StreamHandler()
    stream_h.setFormatter(formatter)
    stream_h.setLevel(logger.level)
    logger.addHandler(stream_h)

    if settings.log_file:
        settings.log_file.parent.mkdir(parents=True, exist_ok=True)
        file_h = RotatingFileHandler(settings.log_file, maxBytes=5_000_000, backupCount=3, encoding="utf-8")
        file_h.setFormatter(formatter)
        file_h.setLevel(logger.level)
        logger.addHandler(file_h)

    logger.propagate = False
    logger.info(
        "logging.initialized",
        extra={"extra": {"logfile": str(settings.log_file) if settings.log_file else None, "profile": settings.profile}},
    )
    return logger


def attach_event_logger(bus: EventBus, logger: Optional[logging.Logger] = None) -> None:
    """
    Подписывает логгер на все события шины.
    """
    base_logger = logger or logging.getLogger(f"{LOGGER_NAME}.events")

    def _handler(ev: Event) -> None:
        base_logger.info(
            "event",
            extra={
                "extra": {
                    "topic": topic_name(ev.topic),
                    "ts": ev.ts,
                    "payload": _jsonable(ev.payload),
                }
            },
        )

    bus.subscribe(const.WILDCARD_TOPIC, _handler)
