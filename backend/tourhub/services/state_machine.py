"""Table-driven state machines shared by the content and booking lifecycles.

A lifecycle is a list of :class:`Transition` rows. Validation is pure: it
takes the current state plus a description of the actor and returns the
next state or raises a taxonomy error. Nothing here touches storage.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum

from tourhub.core.errors import AlreadyProcessedError, InvalidDataError, InvalidStatusError
from tourhub.models.user import UserRole

# Pseudo-state for transitions that remove the entity.
DELETED = "__deleted__"


class Actor(str, Enum):
    ANY = "any"
    OWNER = "owner"
    MODERATOR = "moderator"
    ADMIN = "admin"
    NON_ADMIN = "non_admin"

    def matches(self, actor_is_owner: bool, actor_role: str | None) -> bool:
        if self is Actor.ANY:
            return True
        if self is Actor.OWNER:
            return actor_is_owner
        if self is Actor.MODERATOR:
            return actor_role in (UserRole.AUDITOR.value, UserRole.ADMIN.value)
        if self is Actor.ADMIN:
            return actor_role == UserRole.ADMIN.value
        return actor_role != UserRole.ADMIN.value


@dataclass(frozen=True)
class Transition:
    source: str
    action: str
    target: str
    actor: Actor = Actor.ANY


@dataclass(frozen=True)
class Lifecycle:
    """An immutable transition table.

    ``already_processed`` maps an action to the states from which retrying it
    means "someone already handled this"; those report ``ALREADY_PROCESSED``
    instead of ``INVALID_STATUS``.
    """

    name: str
    states: frozenset[str]
    transitions: tuple[Transition, ...]
    terminal: frozenset[str] = frozenset()
    already_processed: Mapping[str, frozenset[str]] = field(default_factory=dict)

    @classmethod
    def define(
        cls,
        name: str,
        states: Iterable[Enum],
        transitions: Iterable[Transition],
        terminal: Iterable[Enum] = (),
        already_processed: Mapping[str, Iterable[Enum]] | None = None,
    ) -> Lifecycle:
        return cls(
            name=name,
            states=frozenset(s.value for s in states),
            transitions=tuple(transitions),
            terminal=frozenset(s.value for s in terminal),
            already_processed={
                action: frozenset(s.value for s in sources)
                for action, sources in (already_processed or {}).items()
            },
        )

    @property
    def actions(self) -> frozenset[str]:
        return frozenset(t.action for t in self.transitions)

    def is_terminal(self, state: str) -> bool:
        return state in self.terminal

    def candidates(self, state: str, action: str) -> list[Transition]:
        return [t for t in self.transitions if t.source == state and t.action == action]

    def validate(
        self,
        current: str,
        action: str,
        *,
        actor_is_owner: bool = False,
        actor_role: str | None = None,
    ) -> str:
        """Return the state ``action`` leads to from ``current``."""
        if action not in self.actions:
            raise InvalidDataError(f"Unknown {self.name} action '{action}'")
        if current not in self.states:
            raise InvalidStatusError(f"Unknown {self.name} status '{current}'")

        rows = self.candidates(current, action)
        for row in rows:
            if row.actor.matches(actor_is_owner, actor_role):
                return row.target

        if current in self.already_processed.get(action, frozenset()):
            raise AlreadyProcessedError(
                f"{self.name.capitalize()} has already been processed (status '{current}')"
            )
        if rows:
            raise InvalidStatusError(
                f"Cannot {action} a {current} {self.name} as this actor"
            )
        raise InvalidStatusError(f"Cannot {action} a {self.name} in status '{current}'")

    def allowed_actions(
        self,
        current: str,
        *,
        actor_is_owner: bool = False,
        actor_role: str | None = None,
    ) -> list[str]:
        seen: list[str] = []
        for row in self.transitions:
            if (
                row.source == current
                and row.action not in seen
                and row.actor.matches(actor_is_owner, actor_role)
            ):
                seen.append(row.action)
        return seen

    def reachable_from(self, state: str) -> set[str]:
        """States reachable from ``state`` by any sequence of defined actions."""
        reached: set[str] = set()
        frontier = [state]
        while frontier:
            current = frontier.pop()
            for row in self.transitions:
                if row.source == current and row.target not in reached:
                    reached.add(row.target)
                    if row.target != DELETED:
                        frontier.append(row.target)
        return reached
