"""
Static status transition tables.

A TransitionTable answers "may an entity move from `current` to
`requested`?" without touching storage. Each domain app declares its
own table next to its status choices.
"""
from typing import Dict, FrozenSet, Iterable, Mapping

from .exceptions import InvalidTransition


class TransitionTable:
    """
    Directed graph of allowed status transitions.

    Unknown statuses have no outgoing edges, so the functions are total.
    A status is never its own transition.
    """

    def __init__(self, transitions: Mapping[str, Iterable[str]], labels: Mapping[str, str]):
        self._transitions: Dict[str, FrozenSet[str]] = {
            str(source): frozenset(str(target) for target in targets if str(target) != str(source))
            for source, targets in transitions.items()
        }
        self._labels = {str(key): value for key, value in labels.items()}

    @classmethod
    def from_choices(cls, choices, transitions):
        """Build a table whose labels come from a TextChoices class."""
        return cls(transitions, dict(choices.choices))

    @property
    def states(self) -> FrozenSet[str]:
        return frozenset(self._labels)

    def available_transitions(self, current) -> FrozenSet[str]:
        return self._transitions.get(str(current), frozenset())

    def can_transition(self, current, requested) -> bool:
        return str(requested) in self.available_transitions(current)

    def is_terminal(self, current) -> bool:
        return not self.available_transitions(current)

    def label(self, status) -> str:
        return self._labels.get(str(status), str(status))

    def ensure_transition(self, current, requested):
        """Raise InvalidTransition unless current -> requested is in the table."""
        if not self.can_transition(current, requested):
            raise InvalidTransition(
                current=str(current),
                requested=str(requested),
                current_label=self.label(current),
                requested_label=self.label(requested),
            )
