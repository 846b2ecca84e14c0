# tests/conftest.py
from __future__ import annotations
import logging
import os
from pathlib import Path

import pytest

from conveyr.services.runtime import Runtime
from conveyr.services.settings import Settings

# короткий таймаут, чтобы тесты на HandlerTimeout шли быстро
FAST_TIMEOUT_MS = 50

EXAMPLES_DIR = Path(__file__).resolve().parents[1] / "examples"


# ---------- автофикстура: чистое окружение для каждого теста ----------
@pytest.fixture(autouse=True)
def _isolated(tmp_path, monkeypatch):
    for key in list(os.environ):
        if key.startswith("CONVEYR_"):
            monkeypatch.delenv(key, raising=False)
    # conveyr.yaml / .env ищутся в cwd
    monkeypatch.chdir(tmp_path)
    yield
    # setup_logging выключает propagate и вешает свои хендлеры, вернём как было
    logger = logging.getLogger("conveyr")
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def settings() -> Settings:
    return Settings(handler_timeout_ms=FAST_TIMEOUT_MS, json_logs=False, profile="test")


@pytest.fixture
def runtime(settings) -> Runtime:
    return Runtime(settings)


@pytest.fixture
def todo_app_path() -> str:
    return str(EXAMPLES_DIR / "todo.py") + ":app"


# ---------- фикстура CLI-приложения ----------
@pytest.fixture
def cli_app():
    from conveyr.apps.cli.app import app

    return app
