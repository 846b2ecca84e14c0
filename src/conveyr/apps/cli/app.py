# src/conveyr/apps/cli/app.py
from __future__ import annotations

import asyncio
import functools
import json
import os
import traceback
from typing import Any, Optional

import typer
from dotenv import find_dotenv, load_dotenv
from rich import print
from rich.markup import escape
from rich.table import Table

# загружаем .env один раз (CONVEYR_* переменные)
load_dotenv(find_dotenv(usecwd=True))

from conveyr.apps.bootstrap import init_runtime, load_app
from conveyr.core.errors import ConveyrError
from conveyr.services.runtime import Runtime
from conveyr.services.settings import Settings

app = typer.Typer(help="Conveyr: actions -> services -> stores")

# -------- вспомогательные --------


def _run_safe(func):
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except Exception:
            if os.getenv("CONVEYR_CLI_DEBUG") == "1":
                traceback.print_exc()
            raise

    return wrapper


def _settings(ctx: typer.Context) -> Settings:
    return ctx.obj if isinstance(ctx.obj, Settings) else Settings.from_sources()


def _load(ctx: typer.Context, target: str) -> Runtime:
    try:
        return load_app(target, runtime=init_runtime(_settings(ctx)))
    except (ImportError, TypeError, ConveyrError) as e:
        print(f"[red]Cannot load app {escape(repr(target))}:[/red] {escape(str(e))}")
        raise typer.Exit(code=2)


def _stores_table(runtime: Runtime) -> Table:
    table = Table(title="Stores")
    table.add_column("store")
    table.add_column("field")
    table.add_column("type")
    table.add_column("revision", justify="right")
    table.add_column("value")
    for st in runtime.describe()["stores"]:
        for f in st["fields"]:
            table.add_row(st["id"], f["name"], f["type"] or "any", str(f["revision"]), escape(repr(f["value"])))
    return table


# -------- корневой callback (composition root) --------


@app.callback()
@_run_safe
def main(
    ctx: typer.Context,
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Уровень логов (DEBUG, INFO, ...)"),
    config: Optional[str] = typer.Option(None, "--config", help="YAML-файл настроек (по умолчанию conveyr.yaml)"),
):
    """
    Вызывается перед любыми подкомандами: читает настройки (yaml/.env/ENV) и применяет переопределения.
    """
    settings = Settings.from_sources(config_file=config)
    ctx.obj = settings.with_overrides(log_level=log_level)


# -------- команды --------


@app.command("describe")
def describe(ctx: typer.Context, target: str = typer.Argument(..., help="module:attr или path/to/app.py:attr")):
    """Показать actions, services и stores приложения."""
    runtime = _load(ctx, target)
    info = runtime.describe()

    actions = Table(title="Actions")
    actions.add_column("action")
    actions.add_column("targets")
    actions.add_column("payload")
    for a in info["actions"]:
        actions.add_row(a["id"], ", ".join(a["targets"]), ", ".join(a["payload"]) or "-")

    services = Table(title="Services")
    services.add_column("service")
    services.add_column("endpoints")
    services.add_column("stores")
    for s in info["services"]:
        services.add_row(s["id"], ", ".join(s["endpoints"]), ", ".join(s["stores"]) or "-")

    print(actions)
    print(services)
    print(_stores_table(runtime))


@app.command("invoke")
def invoke(
    ctx: typer.Context,
    target: str = typer.Argument(..., help="module:attr или path/to/app.py:attr"),
    action_id: str = typer.Argument(..., help="id действия"),
    payload: Optional[str] = typer.Option(None, "--payload", "-p", help="JSON payload"),
):
    """Вызвать действие один раз и показать состояние stores."""
    try:
        data: Any = json.loads(payload) if payload is not None else None
    except json.JSONDecodeError as e:
        raise typer.BadParameter(f"payload is not valid JSON: {e}", param_hint="--payload")

    runtime = _load(ctx, target)

    async def _run() -> None:
        await runtime.action(action_id).invoke(data)

    try:
        asyncio.run(_run())
    except Exception as e:
        print(f"[red]{action_id} failed:[/red] {type(e).__name__}: {escape(str(e))}")
        print(_stores_table(runtime))
        raise typer.Exit(code=1)

    print(f"[green]{action_id} completed[/green]")
    print(_stores_table(runtime))


@app.command("config")
def show_config(ctx: typer.Context):
    """Показать действующие настройки."""
    table = Table(title="Settings")
    table.add_column("key")
    table.add_column("value")
    for key, value in _settings(ctx).as_dict().items():
        table.add_row(key, str(value))
    print(table)


if __name__ == "__main__":
    app()
