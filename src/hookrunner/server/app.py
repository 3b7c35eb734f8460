"""FastAPI app factory.

The routes are thin: all decisions live in :class:`hookrunner.dispatch.WebhookDispatcher`.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse

from hookrunner import __version__
from hookrunner.config import Config
from hookrunner.dispatch import MAX_BODY_BYTES, REQUEST_TOO_LARGE, WebhookDispatcher

logger = logging.getLogger(__name__)

# /webhook accepts every method so non-POST requests get the dispatcher's 405 text.
_ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


async def read_body_limited(request: Request, limit: int = MAX_BODY_BYTES) -> bytes | None:
    """Read the request body, or return None as soon as it exceeds ``limit`` bytes.

    An oversized upload is never buffered in full.
    """

    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > limit:
        return None

    chunks: list[bytes] = []
    size = 0
    async for chunk in request.stream():
        chunks.append(chunk)
        size += len(chunk)
        if size > limit:
            return None
    return b"".join(chunks)


def create_app(config: Config, dispatcher: WebhookDispatcher | None = None) -> FastAPI:
    dispatcher = dispatcher or WebhookDispatcher.from_config(config)

    app = FastAPI(
        title="hookrunner",
        version=__version__,
        description="Runs local workflows in response to signed GitHub webhooks.",
        openapi_url=None,
        docs_url=None,
        redoc_url=None,
    )

    app.state.config = config
    app.state.dispatcher = dispatcher

    @app.get("/healthz")
    def healthz() -> PlainTextResponse:
        return PlainTextResponse("ok\n")

    @app.api_route("/webhook", methods=_ALL_METHODS)
    async def webhook(request: Request) -> PlainTextResponse:
        body = b"" if request.method != "POST" else await read_body_limited(request)
        if body is None:
            logger.warning("Rejected oversized webhook body")
            response = REQUEST_TOO_LARGE
        else:
            response = dispatcher.handle(request.method, body, request.headers)
        return PlainTextResponse(f"{response.message}\n", status_code=response.status_code)

    logger.info(
        "Loaded %d workflow(s)",
        len(dispatcher.rules),
        extra={"workflows": [rule.name for rule in dispatcher.rules]},
    )
    return app
