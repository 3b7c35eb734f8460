"""Unit tests for payload normalization."""

from __future__ import annotations

import pytest

from hookrunner.events import (
    ActionIgnored,
    EventKind,
    EventSkipped,
    PayloadError,
    UnsupportedEvent,
    normalize,
)


def test_issue_comment_maps_fields(payloads) -> None:
    body = payloads.encode(payloads.comment(body="/cc @claude hi", author="octocat", number=7))

    event = normalize(body, "issue_comment")

    assert event.kind is EventKind.ISSUE_COMMENT
    assert event.action == "created"
    assert event.match_text == "/cc @claude hi"
    assert event.author == "octocat"
    assert event.repo_full_name == "org/repo"
    assert event.repo_clone_url == "https://github.com/org/repo.git"
    assert event.subject_number == 7


def test_review_comment_uses_pull_request_number(payloads) -> None:
    body = payloads.encode(payloads.review_comment(number=12))

    event = normalize(body, "pull_request_review_comment")

    assert event.kind is EventKind.REVIEW_COMMENT
    assert event.subject_number == 12


def test_issue_comment_prefers_non_zero_pull_request_number(payloads) -> None:
    raw = payloads.comment(number=5)
    raw["pull_request"] = {"number": 9}
    assert normalize(payloads.encode(raw), "issue_comment").subject_number == 9

    raw["pull_request"] = {"number": 0}
    assert normalize(payloads.encode(raw), "issue_comment").subject_number == 5


def test_review_submitted_maps_review_fields(payloads) -> None:
    body = payloads.encode(payloads.review(body="LGTM", author="reviewer"))

    event = normalize(body, "pull_request_review")

    assert event.kind is EventKind.REVIEW
    assert event.match_text == "LGTM"
    assert event.author == "reviewer"


def test_review_with_null_body_has_empty_match_text(payloads) -> None:
    event = normalize(payloads.encode(payloads.review(body=None)), "pull_request_review")
    assert event.match_text == ""


@pytest.mark.parametrize(
    ("action", "merged", "expected"),
    [
        ("closed", True, "closed:merged"),
        ("closed", False, "closed:unmerged"),
        ("opened", False, "opened:unmerged"),
    ],
)
def test_pull_request_synthesizes_match_text(payloads, action, merged, expected) -> None:
    body = payloads.encode(payloads.pull_request(action=action, merged=merged))

    event = normalize(body, "pull_request")

    assert event.kind is EventKind.PULL_REQUEST
    assert event.match_text == expected
    assert event.author == ""
    assert event.subject_number == 42


@pytest.mark.parametrize("event_type", ["", "push", "issues", "ping"])
def test_unrecognized_event_type_is_skipped(payloads, event_type: str) -> None:
    with pytest.raises(UnsupportedEvent):
        normalize(payloads.encode(payloads.comment()), event_type)


def test_unrecognized_event_type_is_checked_before_parsing() -> None:
    with pytest.raises(UnsupportedEvent):
        normalize(b"not json", "push")


@pytest.mark.parametrize(
    ("event_type", "payload_name", "action"),
    [
        ("issue_comment", "comment", "edited"),
        ("issue_comment", "comment", "deleted"),
        ("pull_request_review_comment", "review_comment", "edited"),
        ("pull_request_review", "review", "edited"),
        ("pull_request_review", "review", "dismissed"),
    ],
)
def test_wrong_action_is_ignored(payloads, event_type, payload_name, action) -> None:
    body = payloads.encode(getattr(payloads, payload_name)(action=action))

    with pytest.raises(ActionIgnored) as exc_info:
        normalize(body, event_type)

    assert exc_info.value.action == action
    assert isinstance(exc_info.value, EventSkipped)


@pytest.mark.parametrize("body", [b"{not json", b"", b"[1, 2]", b'"text"', b"\xff\xfe"])
def test_malformed_body_is_a_payload_error(body: bytes) -> None:
    with pytest.raises(PayloadError):
        normalize(body, "issue_comment")


def test_deeply_nested_body_is_a_payload_error() -> None:
    depth = 200_000
    body = b'{"action": "created", "x": ' + b"[" * depth + b"]" * depth + b"}"

    with pytest.raises(PayloadError):
        normalize(body, "issue_comment")


def test_missing_required_section_is_a_payload_error(payloads) -> None:
    raw = payloads.comment()
    del raw["comment"]

    with pytest.raises(PayloadError):
        normalize(payloads.encode(raw), "issue_comment")


def test_pull_request_without_action_is_a_payload_error(payloads) -> None:
    raw = payloads.pull_request()
    del raw["action"]

    with pytest.raises(PayloadError):
        normalize(payloads.encode(raw), "pull_request")
