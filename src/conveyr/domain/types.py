# src/conveyr/domain/types.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Hashable, Optional


@dataclass(frozen=True, slots=True)
class Event:
    topic: Hashable
    payload: Any
    ts: float


@dataclass(frozen=True, slots=True)
class ActionResult:
    action_id: str
    instance_id: int
    error: Optional[BaseException] = None

    @property
    def was_successful(self) -> bool:
        return self.error is None
