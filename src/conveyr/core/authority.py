from __future__ import annotations

import logging
import secrets
from collections import defaultdict
from itertools import count
from typing import Any, Dict, Optional, Set

from .errors import WriteAccessDenied

__all__ = ["MutatorContext", "MutationAuthority"]

_log = logging.getLogger(__name__)
_SERIALS = count(1000)


class MutatorContext:
    """Opaque capability token. Equality is identity, so a token cannot be forged
    by rebuilding one with the same id."""

    __slots__ = ("_id", "_owner")

    def __init__(self, owner: str) -> None:
        self._owner = owner
        self._id = f"{next(_SERIALS)}{secrets.token_hex(4)}"

    @property
    def id(self) -> str:
        return self._id

    @property
    def owner(self) -> str:
        return self._owner

    def __repr__(self) -> str:
        return f"<MutatorContext {self._owner}#{self._id}>"


def _store_id(store: Any) -> str:
    return getattr(store, "id", store)


class MutationAuthority:
    """Authorization table: which mutator contexts may write to which store.

    Grants are keyed by the store object itself, so two stores sharing an id
    (for example in two runtimes with one authority) never share grants.
    """

    def __init__(self) -> None:
        self._grants: Dict[Any, Set[MutatorContext]] = defaultdict(set)

    def issue(self, owner: str) -> MutatorContext:
        token = MutatorContext(owner)
        _log.debug("authority.issue", extra={"extra": {"owner": owner, "token": token.id}})
        return token

    def authorize(self, store: Any, token: MutatorContext) -> None:
        self._grants[store].add(token)

    def revoke(self, store: Any, token: MutatorContext) -> None:
        self._grants[store].discard(token)

    def is_authorized(self, store: Any, token: Any) -> bool:
        grants = self._grants.get(store, ())
        return isinstance(token, MutatorContext) and token in grants

    def require(self, store: Any, token: Any, field: Optional[str] = None) -> None:
        if not self.is_authorized(store, token):
            _log.warning(
                "store.write_denied",
                extra={"extra": {"store": _store_id(store), "field": field, "token": repr(token)}},
            )
            raise WriteAccessDenied(_store_id(store), field)

    def tokens(self, store: Any) -> frozenset[MutatorContext]:
        return frozenset(self._grants.get(store, ()))
