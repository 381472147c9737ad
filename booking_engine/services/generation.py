"""Generation counter for "latest request wins" asynchronous lookups."""

from collections.abc import Hashable
from dataclasses import dataclass


@dataclass(frozen=True)
class RequestTicket:
    """Tag carried by an in-flight lookup."""

    generation: int
    key: Hashable = None


class GenerationGuard:
    """
    Monotonic generation counter.

    Every issued request and every invalidation advances the generation. A
    response is relevant only while its ticket's generation is still the
    current one; superseded responses are dropped, not cancelled.
    """

    def __init__(self) -> None:
        self._generation = 0
        self._key: Hashable = None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def key(self) -> Hashable:
        return self._key

    def issue(self, key: Hashable = None) -> RequestTicket:
        """Start a new request, superseding every earlier ticket."""
        self._generation += 1
        self._key = key
        return RequestTicket(generation=self._generation, key=key)

    def invalidate(self, key: Hashable = None) -> None:
        """Supersede every earlier ticket without starting a request."""
        self._generation += 1
        self._key = key

    def is_current(self, ticket: RequestTicket) -> bool:
        return ticket.generation == self._generation and ticket.key == self._key
