# events/reactions.py
"""
Base classes for reactions.

A reaction is follow-up work triggered by a committed domain event.
Reactions:
- Declare which event types they consume
- Run after the originating transaction has committed
- Never affect the outcome of the originating request
- MUST be idempotent: reconciliation may run them again for the same event
"""

from abc import ABC, abstractmethod
from typing import Dict, List

from events.models import DomainEvent


class BaseReaction(ABC):
    """
    Base class for all reactions.

    Subclasses must implement:
    - name: Unique identifier (stored on ReactionRun)
    - consumes: Event types this reaction handles
    - handle(event): Do the work; raise to report failure
    """

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @property
    @abstractmethod
    def consumes(self) -> List[str]:
        pass

    @abstractmethod
    def handle(self, event: DomainEvent) -> None:
        pass


class ReactionRegistry:
    """
    Reactions keyed by event type, kept in registration order.

    Usage:
        reaction_registry.register(ProvisionCompanyAdmin())
        for reaction in reaction_registry.for_event_type("company.created"):
            ...
    """

    def __init__(self):
        self._reactions: Dict[str, BaseReaction] = {}
        self._by_event_type: Dict[str, List[BaseReaction]] = {}

    def register(self, reaction: BaseReaction) -> None:
        if reaction.name in self._reactions:
            existing = self._reactions[reaction.name]
            if type(existing) is type(reaction):
                return
            raise ValueError(f"Reaction name '{reaction.name}' is already registered")
        self._reactions[reaction.name] = reaction
        for event_type in reaction.consumes:
            self._by_event_type.setdefault(event_type, []).append(reaction)

    def unregister(self, name: str) -> None:
        reaction = self._reactions.pop(name, None)
        if reaction is None:
            return
        for event_type in reaction.consumes:
            self._by_event_type[event_type] = [
                r for r in self._by_event_type.get(event_type, []) if r.name != name
            ]

    def for_event_type(self, event_type: str) -> List[BaseReaction]:
        return list(self._by_event_type.get(event_type, []))

    def event_types(self) -> List[str]:
        return [et for et, reactions in self._by_event_type.items() if reactions]


# Global registry instance
reaction_registry = ReactionRegistry()
