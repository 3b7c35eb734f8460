"""HTTP hosting for the webhook dispatcher.

Design intent:
- Keep decision logic in `hookrunner.dispatch` and below
- Keep server-specific concerns (routing, body limits) here
"""

from __future__ import annotations

__all__ = ["create_app"]

from hookrunner.server.app import create_app
