"""Trigger matching of events against configured workflows."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator, Mapping
from dataclasses import dataclass

from hookrunner.config import WorkflowConfig
from hookrunner.events import DEFAULT_EVENT_KINDS, Event, EventKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Rule:
    """A workflow with its trigger compiled once at load time.

    ``pattern`` is None when the trigger is not a valid regular expression; such a
    rule never matches and ``error`` says why.
    """

    name: str
    workflow: WorkflowConfig
    event_kinds: frozenset[EventKind]
    allowed_users: frozenset[str]
    pattern: re.Pattern[str] | None
    error: str | None = None

    @classmethod
    def compile(cls, name: str, workflow: WorkflowConfig) -> Rule:
        pattern: re.Pattern[str] | None = None
        error: str | None = None
        try:
            pattern = re.compile(workflow.trigger)
        except re.error as e:
            error = str(e)
        return cls(
            name=name,
            workflow=workflow,
            event_kinds=frozenset(workflow.events) or DEFAULT_EVENT_KINDS,
            allowed_users=frozenset(u.casefold() for u in workflow.allowed_users),
            pattern=pattern,
            error=error,
        )


@dataclass(frozen=True, slots=True)
class RuleSet:
    """Immutable, load-once collection of rules shared by all requests."""

    rules: tuple[Rule, ...] = ()

    @classmethod
    def from_workflows(cls, workflows: Mapping[str, WorkflowConfig]) -> RuleSet:
        return cls(rules=tuple(Rule.compile(name, wf) for name, wf in workflows.items()))

    def __iter__(self) -> Iterator[Rule]:
        return iter(self.rules)

    def __len__(self) -> int:
        return len(self.rules)

    @property
    def invalid(self) -> tuple[Rule, ...]:
        return tuple(r for r in self.rules if r.pattern is None)


def matches(event: Event, rule: Rule) -> bool:
    """Return True when ``rule`` should fire for ``event``.

    Checks, in order: event kind, author allowlist, trigger pattern.
    """

    if event.kind not in rule.event_kinds:
        return False
    if rule.allowed_users and event.author.casefold() not in rule.allowed_users:
        return False
    if rule.pattern is None:
        return False
    return rule.pattern.search(event.match_text) is not None


def matching_rules(event: Event, rules: RuleSet) -> list[Rule]:
    """Every rule that fires for ``event``; invalid triggers are logged and skipped."""

    for rule in rules.invalid:
        logger.warning(
            "Invalid trigger regex for workflow %r: %s",
            rule.name,
            rule.error,
            extra={"workflow": rule.name, "trigger": rule.workflow.trigger},
        )
    return [rule for rule in rules if matches(event, rule)]
