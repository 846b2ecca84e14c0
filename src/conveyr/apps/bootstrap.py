# src/conveyr/apps/bootstrap.py
from __future__ import annotations
import importlib
import importlib.util
import sys
from pathlib import Path
from typing import Any, Optional

from conveyr.core.authority import MutationAuthority
from conveyr.services.eventbus import LocalEventBus
from conveyr.services.logging import attach_event_logger, setup_logging
from conveyr.services.runtime import Runtime
from conveyr.services.settings import Settings


def init_runtime(settings: Optional[Settings] = None) -> Runtime:
    """Собирает Runtime: настройки, логи, шина, authority."""
    settings = settings or Settings.from_sources()
    bus = LocalEventBus()
    root_logger = setup_logging(settings)
    attach_event_logger(bus, root_logger.getChild("events"))
    return Runtime(settings, bus=bus, authority=MutationAuthority())


def _import_target(path: str) -> Any:
    if path.endswith(".py"):
        file = Path(path).expanduser().resolve()
        if not file.is_file():
            raise ImportError(f"app file not found: {file}")
        # уникализируем имя модуля по пути, чтобы не затирать предыдущие
        mod_name = "conveyr_app_" + file.with_suffix("").as_posix().strip("/").replace("/", "_")
        spec = importlib.util.spec_from_file_location(mod_name, file)
        if spec is None or spec.loader is None:
            raise ImportError(f"cannot load app file: {file}")
        module = importlib.util.module_from_spec(spec)
        sys.modules[mod_name] = module
        spec.loader.exec_module(module)
        return module
    return importlib.import_module(path)


def load_app(target: str, runtime: Optional[Runtime] = None) -> Runtime:
    """Load an application from ``"package.module:attr"`` or ``"path/to/app.py:attr"``.

    ``attr`` defaults to ``app``. It may be a :class:`Runtime`, or a callable
    that receives a Runtime, wires its actions, services and stores, and
    returns that Runtime (or ``None``).
    """
    module_path, sep, attr = target.rpartition(":")
    if not sep or not module_path or "/" in attr or "\\" in attr:
        # нет ":attr" (или это двоеточие диска в Windows-пути)
        module_path, attr = target, "app"
    module = _import_target(module_path)
    try:
        obj = getattr(module, attr)
    except AttributeError:
        raise ImportError(f"{module_path!r} has no attribute {attr!r}") from None

    if isinstance(obj, Runtime):
        return obj
    if callable(obj):
        runtime = runtime or init_runtime()
        result = obj(runtime)
        if result is None:
            return runtime
        if not isinstance(result, Runtime):
            raise TypeError(f"{target!r} returned {type(result).__name__}, expected Runtime or None")
        return result
    raise TypeError(f"{target!r} is neither a Runtime nor a callable")
