"""
Value set resolution (collaborator boundary).

The core only depends on the ValueSetResolver contract:

    resolve(reference, visitor)
        Calls visitor(coding) once per coding, in set-defined order.
        Ordering is not guaranteed stable across calls.
        Unknown or broken references yield zero codings, never an error.

Two implementations are provided:
    - InMemoryValueSetResolver: contained value sets plus registered ones
    - DeferredValueSetResolver: queues visitors until complete() is called,
      which is how asynchronous arrival is modelled in a single thread
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable, Dict, Iterable, List, Optional

from .datatypes import Coding

logger = logging.getLogger(__name__)

CodingVisitor = Callable[[Coding], None]


class ValueSetResolver:
    """Resolves a value set reference to its codings."""

    def resolve(self, reference: str, visitor: CodingVisitor) -> None:
        raise NotImplementedError


def codings_from_value_set(value_set: Dict[str, Any]) -> List[Coding]:
    """
    Flatten a ValueSet resource into codings.

    Uses the expansion when present, otherwise compose.include concepts.
    """
    codings: List[Coding] = []
    expansion = value_set.get("expansion") or {}
    if expansion.get("contains"):
        stack = list(expansion["contains"])
        while stack:
            entry = stack.pop(0)
            if entry.get("code") or entry.get("display"):
                codings.append(Coding.from_dict(entry))
            # Nested contains follow their parent
            stack[0:0] = entry.get("contains") or []
        return codings

    for include in (value_set.get("compose") or {}).get("include") or []:
        system = include.get("system")
        for concept in include.get("concept") or []:
            codings.append(
                Coding.from_dict(
                    {
                        "system": system,
                        "code": concept.get("code"),
                        "display": concept.get("display"),
                        "extension": concept.get("extension"),
                    }
                )
            )
    return codings


class InMemoryValueSetResolver(ValueSetResolver):
    """
    Resolves contained ("#id") and registered canonical references.

    Properties:
        contained: id -> ValueSet resource (from Questionnaire.contained)
        registry: canonical url -> ValueSet resource
    """

    def __init__(
        self,
        contained: Optional[Dict[str, Dict[str, Any]]] = None,
        registry: Optional[Dict[str, Dict[str, Any]]] = None,
    ):
        self.contained = dict(contained or {})
        self.registry = dict(registry or {})

    def register(self, value_set: Dict[str, Any]) -> None:
        url = value_set.get("url")
        if not url:
            raise ValueError("ValueSet without url cannot be registered")
        self.registry[url] = value_set

    def _lookup(self, reference: str) -> Optional[Dict[str, Any]]:
        if reference.startswith("#"):
            return self.contained.get(reference[1:])
        # Canonical references may carry a |version suffix
        return self.registry.get(reference) or self.registry.get(reference.split("|", 1)[0])

    def resolve(self, reference: str, visitor: CodingVisitor) -> None:
        value_set = self._lookup(reference)
        if value_set is None:
            logger.warning("value set %s could not be resolved", reference)
            return
        for coding in codings_from_value_set(value_set):
            visitor(coding)


class DeferredValueSetResolver(ValueSetResolver):
    """
    Holds visitors until the caller delivers codings.

    complete() may be called long after resolve(); visitors are responsible
    for checking that their owner is still alive.
    """

    def __init__(self):
        self._pending: Dict[str, List[CodingVisitor]] = defaultdict(list)

    @property
    def pending_references(self) -> List[str]:
        return [ref for ref, visitors in self._pending.items() if visitors]

    def resolve(self, reference: str, visitor: CodingVisitor) -> None:
        self._pending[reference].append(visitor)

    def complete(self, reference: str, codings: Iterable[Coding]) -> int:
        """Deliver codings to every waiting visitor. Returns the visitor count."""
        visitors = self._pending.pop(reference, [])
        codings = list(codings)
        for visitor in visitors:
            for coding in codings:
                visitor(coding)
        return len(visitors)

    def fail(self, reference: str) -> None:
        """Drop waiting visitors; their items keep zero options."""
        dropped = self._pending.pop(reference, [])
        logger.warning("value set %s failed to resolve (%d waiting)", reference, len(dropped))


__all__ = [
    "ValueSetResolver",
    "InMemoryValueSetResolver",
    "DeferredValueSetResolver",
    "CodingVisitor",
    "codings_from_value_set",
]
