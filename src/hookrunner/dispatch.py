"""The webhook decision pipeline.

verify -> normalize -> match every rule -> launch matches in the background.

:meth:`WebhookDispatcher.handle` is synchronous and returns as soon as the
matched workflows have been handed off; it never waits for them.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass

from hookrunner.config import Config, WorkflowConfig
from hookrunner.events import (
    ActionIgnored,
    Event,
    PayloadError,
    UnsupportedEvent,
    normalize,
)
from hookrunner.matching import RuleSet, matching_rules
from hookrunner.signature import SIGNATURE_HEADER, verify_signature
from hookrunner.workflow import execute_workflow

logger = logging.getLogger(__name__)

MAX_BODY_BYTES = 10 << 20
EVENT_HEADER = "X-GitHub-Event"

Spawner = Callable[[str, WorkflowConfig, Event], None]


@dataclass(frozen=True, slots=True)
class DispatchResponse:
    status_code: int
    message: str


@dataclass(frozen=True, slots=True)
class DispatchOutcome:
    matched_any: bool = False
    launched: tuple[str, ...] = ()


METHOD_NOT_ALLOWED = DispatchResponse(405, "method not allowed")
REQUEST_TOO_LARGE = DispatchResponse(413, "request too large")
INVALID_SIGNATURE = DispatchResponse(403, "invalid signature")
EVENT_IGNORED = DispatchResponse(200, "event ignored")
INVALID_JSON = DispatchResponse(400, "invalid JSON")
ACTION_IGNORED = DispatchResponse(200, "action ignored")
NO_MATCH = DispatchResponse(200, "no matching workflow")
DISPATCHED = DispatchResponse(202, "workflow dispatched")


def _run_in_thread(name: str, workflow: WorkflowConfig, event: Event) -> None:
    thread = threading.Thread(
        target=_run_workflow,
        name=f"workflow-{name}-{event.subject_number}",
        daemon=True,
        args=(name, workflow, event),
    )
    thread.start()


def _run_workflow(name: str, workflow: WorkflowConfig, event: Event) -> None:
    try:
        execute_workflow(name, workflow, event)
    except Exception:
        logger.exception("Workflow %r crashed", name, extra={"workflow": name})


class WebhookDispatcher:
    """Per-request entry point built once from a loaded :class:`Config`.

    The rule set is immutable and shared by all requests without locking. To
    reload configuration, build a new dispatcher rather than mutating this one.
    """

    def __init__(self, secret: str, rules: RuleSet, spawn: Spawner | None = None) -> None:
        self._secret = secret
        self._rules = rules
        self._spawn = spawn or _run_in_thread

    @classmethod
    def from_config(cls, config: Config, spawn: Spawner | None = None) -> WebhookDispatcher:
        return cls(
            secret=config.webhook_secret,
            rules=RuleSet.from_workflows(config.workflows),
            spawn=spawn,
        )

    @property
    def rules(self) -> RuleSet:
        return self._rules

    def handle(self, method: str, body: bytes, headers: Mapping[str, str]) -> DispatchResponse:
        """Decide what to do with one delivery and return the HTTP outcome."""

        if method.upper() != "POST":
            return METHOD_NOT_ALLOWED

        if len(body) > MAX_BODY_BYTES:
            logger.warning("Rejected oversized webhook body", extra={"size": len(body)})
            return REQUEST_TOO_LARGE

        lowered = {k.lower(): v for k, v in headers.items()}

        if not verify_signature(body, lowered.get(SIGNATURE_HEADER.lower(), ""), self._secret):
            logger.warning(
                "Rejected webhook with invalid signature",
                extra={"delivery": lowered.get("x-github-delivery", "")},
            )
            return INVALID_SIGNATURE

        event_type = lowered.get(EVENT_HEADER.lower(), "")
        try:
            event = normalize(body, event_type)
        except UnsupportedEvent:
            logger.debug("Ignoring event type %r", event_type)
            return EVENT_IGNORED
        except PayloadError as e:
            logger.info("Rejected webhook payload: %s", e, extra={"event_type": event_type})
            return INVALID_JSON
        except ActionIgnored as e:
            logger.debug("Ignoring action %r for %s", e.action, e.kind.value)
            return ACTION_IGNORED

        outcome = self.dispatch(event)
        return DISPATCHED if outcome.matched_any else NO_MATCH

    def dispatch(self, event: Event) -> DispatchOutcome:
        """Launch every rule that matches ``event``; does not wait for them."""

        matched = False
        launched: list[str] = []
        for rule in matching_rules(event, self._rules):
            logger.info(
                "Workflow %r triggered by %s on %s#%d",
                rule.name,
                event.author or "-",
                event.repo_full_name,
                event.subject_number,
                extra={"workflow": rule.name, "event_type": event.kind.value},
            )
            matched = True
            try:
                self._spawn(rule.name, rule.workflow, event)
            except Exception:
                logger.exception("Workflow %r could not be scheduled", rule.name)
                continue
            launched.append(rule.name)
        return DispatchOutcome(matched_any=matched, launched=tuple(launched))
