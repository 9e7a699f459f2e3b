from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass

from tokenbot.src.models import PENDING_STATES, Record


@dataclass(frozen=True)
class Guard:
    """Precondition on a record that answers with a fixed reply when it fails."""

    name: str
    predicate: Callable[[Record], bool]
    reply: str

    def check(self, record: Record) -> str | None:
        """Return None if the precondition holds, otherwise the failure reply."""
        if self.predicate(record):
            return None
        return self.reply


def run_guards(guards: Iterable[Guard], record: Record) -> str | None:
    """Return the reply of the first failing guard, or None if all pass."""
    for guard in guards:
        failure = guard.check(record)
        if failure is not None:
            return failure
    return None


# -- Factories -----------------------------------------------------------------


def guest_only(reply: str) -> Guard:
    return Guard("guest_only", lambda record: record.token is None, reply)


def registered_only(reply: str) -> Guard:
    return Guard("registered_only", lambda record: record.token is not None, reply)


def no_pending_action(reply: str) -> Guard:
    return Guard("no_pending_action", lambda record: record.state not in PENDING_STATES, reply)


def pending_only(reply: str) -> Guard:
    """Confirmation guard: passes only while a destructive action awaits confirm/cancel."""
    return Guard("pending_only", lambda record: record.state in PENDING_STATES, reply)


def registration_open(is_enabled: Callable[[], bool], reply: str) -> Guard:
    """Global policy check; ``is_enabled`` is read on every evaluation."""
    return Guard("registration_open", lambda record: is_enabled(), reply)
