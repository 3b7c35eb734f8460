"""Test configuration and fixtures."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest

from hookrunner.config import Config, WorkflowConfig
from hookrunner.dispatch import WebhookDispatcher
from hookrunner.events import Event
from hookrunner.signature import sign

SECRET = "test-secret"


class Payloads:
    """Builders for minimal but well-formed GitHub webhook bodies."""

    secret = SECRET

    @staticmethod
    def comment(
        action: str = "created",
        body: str = "/cc @claude please review",
        repo: str = "org/repo",
        number: int = 42,
        author: str = "octocat",
    ) -> dict[str, Any]:
        return {
            "action": action,
            "comment": {"body": body, "user": {"login": author}},
            "issue": {"number": number},
            "repository": {"full_name": repo, "clone_url": f"https://github.com/{repo}.git"},
        }

    @staticmethod
    def review_comment(
        action: str = "created",
        body: str = "/cc @claude please review",
        repo: str = "org/repo",
        number: int = 42,
        author: str = "octocat",
    ) -> dict[str, Any]:
        return {
            "action": action,
            "comment": {"body": body, "user": {"login": author}},
            "pull_request": {"number": number},
            "repository": {"full_name": repo, "clone_url": f"https://github.com/{repo}.git"},
        }

    @staticmethod
    def review(
        action: str = "submitted",
        body: str | None = "/cc @claude please review",
        repo: str = "org/repo",
        number: int = 42,
        author: str = "reviewer",
    ) -> dict[str, Any]:
        return {
            "action": action,
            "review": {"body": body, "user": {"login": author}},
            "pull_request": {"number": number},
            "repository": {"full_name": repo, "clone_url": f"https://github.com/{repo}.git"},
        }

    @staticmethod
    def pull_request(
        action: str = "closed", merged: bool = True, repo: str = "org/repo", number: int = 42
    ) -> dict[str, Any]:
        return {
            "action": action,
            "pull_request": {"number": number, "merged": merged},
            "repository": {"full_name": repo, "clone_url": f"https://github.com/{repo}.git"},
        }

    @staticmethod
    def encode(payload: dict[str, Any]) -> bytes:
        return json.dumps(payload).encode("utf-8")

    @staticmethod
    def headers(body: bytes, event_type: str, secret: str = SECRET) -> dict[str, str]:
        return {"X-Hub-Signature-256": sign(body, secret), "X-GitHub-Event": event_type}


@dataclass
class RecordingSpawner:
    """Stands in for the background launcher; records instead of running."""

    calls: list[tuple[str, WorkflowConfig, Event]] = field(default_factory=list)

    def __call__(self, name: str, workflow: WorkflowConfig, event: Event) -> None:
        self.calls.append((name, workflow, event))

    @property
    def names(self) -> list[str]:
        return [name for name, _, _ in self.calls]


@pytest.fixture
def payloads() -> type[Payloads]:
    return Payloads


@pytest.fixture
def spawner() -> RecordingSpawner:
    return RecordingSpawner()


@pytest.fixture
def review_workflow() -> WorkflowConfig:
    return WorkflowConfig(
        events=("issue_comment", "pull_request_review_comment", "pull_request_review"),
        trigger=r"/cc\s+@claude",
        command="echo {repo_full_name} {pr_number}",
        timeout=5,
    )


@pytest.fixture
def config(review_workflow: WorkflowConfig) -> Config:
    return Config(webhook_secret=SECRET, workflows={"review": review_workflow})


@pytest.fixture
def dispatcher(config: Config, spawner: RecordingSpawner) -> WebhookDispatcher:
    return WebhookDispatcher.from_config(config, spawn=spawner)


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(
        "\n".join(
            [
                'webhook_secret: "testsecret"',
                "port: 9999",
                "workflows:",
                "  test:",
                "    trigger: '/cc'",
                "    command: 'echo hello'",
                "",
            ]
        ),
        encoding="utf-8",
    )
    return path
