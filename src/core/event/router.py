"""
Wildcard routing for Pathway event names.

Matches dotted event names such as "progression.points_awarded" against
subscription patterns: "*", "progression.*", "*.updated" or
"progression.*.awarded". Stateless.
"""

from __future__ import annotations


class EventRouter:
    """
    Wildcard pattern matching for event names.

    >>> router = EventRouter()
    >>> router.matches("progression.leveled_up", "progression.*")
    True
    >>> router.matches("progression.leveled_up", "score.*")
    False
    >>> router.matches("progression.points.awarded", "progression.*.awarded")
    True
    >>> router.matches("anything", "*")
    True
    """

    def matches(self, event_name: str, pattern: str) -> bool:
        """True when ``event_name`` matches ``pattern`` ("*" spans any text, dots included)."""
        if pattern == "*":
            return True

        if "*" not in pattern:
            return event_name == pattern

        while "**" in pattern:
            pattern = pattern.replace("**", "*")

        head, *middle, tail = pattern.split("*")

        if not event_name.startswith(head):
            return False
        if not event_name.endswith(tail):
            return False
        if len(head) + len(tail) > len(event_name):
            return False

        # Middle fragments must appear in order between head and tail
        cursor = len(head)
        limit = len(event_name) - len(tail)
        for fragment in middle:
            found = event_name.find(fragment, cursor, limit)
            if found == -1:
                return False
            cursor = found + len(fragment)

        return True

    def is_pattern(self, event_key: str) -> bool:
        return "*" in event_key
