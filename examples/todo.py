"""Todo list wired with conveyr.

    conveyr describe examples/todo.py:app
    conveyr invoke examples/todo.py:app add_todo --payload '{"title": "milk"}'
"""

from __future__ import annotations

import asyncio

from conveyr import Runtime


def app(runtime: Runtime) -> Runtime:
    todos = (
        runtime.create_store("todos")
        .defines_field("items", list)
        .defines_field("last_added", {"type": str, "default": None})
        .build()
    )

    def add(mutator, payload):
        item = {"title": payload["title"], "done": payload["done"]}
        todos.field("items").update(mutator, lambda items: [*items, item])
        todos.field("last_added").update(mutator, lambda _: item["title"])

    def toggle(mutator, payload, done):
        index = payload["index"]

        def flip(items):
            if not 0 <= index < len(items):
                raise IndexError(f"no todo at index {index}")
            flipped = dict(items[index], done=not items[index]["done"])
            return [*items[:index], flipped, *items[index + 1 :]]

        try:
            todos.field("items").update(mutator, flip)
        except IndexError as e:
            done(e)
        else:
            done()

    async def clear(mutator):
        await asyncio.sleep(0)
        todos.field("items").update(mutator, lambda _: [])

    service = (
        runtime.create_service("todo_list")
        .updates_stores("todos")
        .exposes_endpoint("add", add)
        .exposes_endpoint("toggle", toggle)
        .exposes_endpoint("clear", clear)
        .build()
    )

    runtime.create_action("add_todo").accepts_payload(
        {"title": str, "done": {"type": bool, "default": False}}
    ).calls_endpoint(service.ref("add")).build()
    runtime.create_action("toggle_todo").accepts_payload({"index": int}).calls_endpoint(service.ref("toggle")).build()
    runtime.create_action("clear_todos").calls_endpoint(service.ref("clear")).build()
    return runtime
