"""Normalization of GitHub webhook payloads into :class:`Event` records.

Each supported ``X-GitHub-Event`` label has its own payload model. The label is
resolved first, then the body is validated against that one shape, so a field
that does not exist for an event kind can never be read as an empty default.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator


class EventKind(str, Enum):
    ISSUE_COMMENT = "issue_comment"
    REVIEW_COMMENT = "pull_request_review_comment"
    REVIEW = "pull_request_review"
    PULL_REQUEST = "pull_request"


# Kinds a workflow listens to when it does not list any.
DEFAULT_EVENT_KINDS: frozenset[EventKind] = frozenset(
    {EventKind.ISSUE_COMMENT, EventKind.REVIEW_COMMENT, EventKind.REVIEW}
)

# Actions that are processed per kind; None means every action is.
REQUIRED_ACTIONS: dict[EventKind, str | None] = {
    EventKind.ISSUE_COMMENT: "created",
    EventKind.REVIEW_COMMENT: "created",
    EventKind.REVIEW: "submitted",
    EventKind.PULL_REQUEST: None,
}


class WebhookError(Exception):
    """Base class for normalization outcomes that stop the pipeline."""


class PayloadError(WebhookError):
    """The body is not JSON or does not have the shape its event kind requires."""


class EventSkipped(WebhookError):
    """A well-formed delivery that no workflow could ever act on."""


class UnsupportedEvent(EventSkipped):
    def __init__(self, event_type: str) -> None:
        super().__init__(f"unsupported event type: {event_type!r}")
        self.event_type = event_type


class ActionIgnored(EventSkipped):
    def __init__(self, kind: EventKind, action: str) -> None:
        super().__init__(f"{kind.value}: action {action!r} is not processed")
        self.kind = kind
        self.action = action


@dataclass(frozen=True, slots=True)
class Event:
    """The uniform record trigger matching works on."""

    kind: EventKind
    action: str
    match_text: str
    author: str
    repo_full_name: str
    repo_clone_url: str
    subject_number: int


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class _User(_Payload):
    login: str


class _Authored(_Payload):
    body: str = ""
    user: _User

    @field_validator("body", mode="before")
    @classmethod
    def _null_body(cls, value: object) -> object:
        # Reviews submitted without a message carry "body": null.
        return "" if value is None else value


class _Numbered(_Payload):
    number: int = 0


class _PullRequest(_Numbered):
    merged: bool = False


class _Repository(_Payload):
    full_name: str
    clone_url: str = ""


class IssueCommentPayload(_Payload):
    action: str
    comment: _Authored
    issue: _Numbered
    pull_request: _Numbered | None = None
    repository: _Repository


class ReviewCommentPayload(_Payload):
    action: str
    comment: _Authored
    pull_request: _Numbered
    repository: _Repository


class ReviewPayload(_Payload):
    action: str
    review: _Authored
    pull_request: _Numbered
    repository: _Repository


class PullRequestPayload(_Payload):
    action: str
    pull_request: _PullRequest
    repository: _Repository


_PAYLOAD_MODELS: dict[EventKind, type[_Payload]] = {
    EventKind.ISSUE_COMMENT: IssueCommentPayload,
    EventKind.REVIEW_COMMENT: ReviewCommentPayload,
    EventKind.REVIEW: ReviewPayload,
    EventKind.PULL_REQUEST: PullRequestPayload,
}


def parse_event_kind(event_type: str) -> EventKind:
    try:
        return EventKind(event_type)
    except ValueError:
        raise UnsupportedEvent(event_type) from None


def _subject_number(pull_request: _Numbered | None, issue: _Numbered | None) -> int:
    if pull_request is not None and pull_request.number:
        return pull_request.number
    if issue is not None:
        return issue.number
    return 0


def _to_event(kind: EventKind, payload: _Payload) -> Event:
    if isinstance(payload, PullRequestPayload):
        merged = "merged" if payload.pull_request.merged else "unmerged"
        return Event(
            kind=kind,
            action=payload.action,
            match_text=f"{payload.action}:{merged}",
            author="",
            repo_full_name=payload.repository.full_name,
            repo_clone_url=payload.repository.clone_url,
            subject_number=payload.pull_request.number,
        )

    if isinstance(payload, ReviewPayload):
        authored = payload.review
        number = _subject_number(payload.pull_request, None)
    elif isinstance(payload, ReviewCommentPayload):
        authored = payload.comment
        number = _subject_number(payload.pull_request, None)
    elif isinstance(payload, IssueCommentPayload):
        authored = payload.comment
        number = _subject_number(payload.pull_request, payload.issue)
    else:  # pragma: no cover - _PAYLOAD_MODELS is exhaustive
        raise TypeError(f"unhandled payload type: {type(payload).__name__}")

    return Event(
        kind=kind,
        action=payload.action,
        match_text=authored.body,
        author=authored.user.login,
        repo_full_name=payload.repository.full_name,
        repo_clone_url=payload.repository.clone_url,
        subject_number=number,
    )


def normalize(body: bytes | str, event_type: str) -> Event:
    """Turn a raw delivery into an :class:`Event`.

    Raises:
        UnsupportedEvent: ``event_type`` is not one of :class:`EventKind`.
        PayloadError: the body is not a JSON object of the expected shape.
        ActionIgnored: the action is not processed for this kind.
    """

    kind = parse_event_kind(event_type)

    try:
        raw: Any = json.loads(body)
    except (ValueError, UnicodeDecodeError) as e:
        raise PayloadError(f"invalid JSON: {e}") from e
    except RecursionError as e:
        raise PayloadError("invalid JSON: nested too deeply") from e
    if not isinstance(raw, dict):
        raise PayloadError("invalid JSON: top level must be an object")

    action = raw.get("action")
    if not isinstance(action, str):
        action = ""
    required = REQUIRED_ACTIONS[kind]
    if required is not None and action != required:
        raise ActionIgnored(kind, action)

    try:
        payload = _PAYLOAD_MODELS[kind].model_validate(raw)
    except ValidationError as e:
        raise PayloadError(f"invalid {kind.value} payload: {e}") from e

    return _to_event(kind, payload)
