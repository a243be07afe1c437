# backoffice/services/transitions.py
from __future__ import annotations

import logging
from typing import Any, Mapping, TypeVar

from backoffice.services.errors import InvalidStateTransition

logger = logging.getLogger("backoffice.workflow")

S = TypeVar("S")


def can_transition(table: Mapping[S, frozenset[S]], current: S, target: S) -> bool:
    return target in table.get(current, frozenset())


def ensure_transition(
    table: Mapping[S, frozenset[S]],
    *,
    entity: str,
    id: Any,
    current: S,
    target: S,
) -> None:
    """迁移不在表内 → InvalidStateTransition（并记一条 warning）。"""
    if can_transition(table, current, target):
        return
    logger.warning("reject transition %s %s: %s -> %s", entity, id, current, target)
    raise InvalidStateTransition(entity, id, str(current), str(target))
