# MIT License
#
# Copyright (c) 2025 Timothy J Fontaine
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.

"""
Request handlers for the topic chat proxy.

Cross-cutting concerns (access logging, CORS, error rendering) live in the
middleware, so each handler only validates its body, assembles the prompt
and runs model fallback resolution.
"""

import json
from typing import Type, TypeVar

from aiohttp import web
from pydantic import BaseModel, ValidationError

from topic_chat.logging_config import get_loggers
from topic_chat.server.errors import (
    ProxyError,
    RequestValidationError,
    missing_api_key,
)
from topic_chat.server.models import ChatRequest, CompletionRequest, SummarizeRequest
from topic_chat.server.prompts import (
    build_chat_request,
    build_summary_request,
    render_messages,
)
from topic_chat.upstream.fallback import Completion, resolve_completion

app_logger, _, _ = get_loggers()

BodyModel = TypeVar("BodyModel", bound=BaseModel)


async def read_body(request: web.Request, model_cls: Type[BodyModel]) -> BodyModel:
    """Parse the JSON body into ``model_cls``; an empty body counts as ``{}``."""
    try:
        raw = await request.text()
        data = json.loads(raw) if raw.strip() else {}
    except (UnicodeDecodeError, ValueError):
        raise RequestValidationError("Request body must be valid JSON.")
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise RequestValidationError("Request body must be a JSON object.")

    try:
        return model_cls.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise RequestValidationError(
            f"Invalid request body: {location}: {first['msg']}"
        )


async def complete(
    request: web.Request, completion_request: CompletionRequest, failure_prefix: str
) -> Completion:
    """Run fallback resolution for one request, recording models for the log."""
    config = request.app["config"]
    groq_client = request.app["groq_client"]
    messages = render_messages(completion_request)

    app_logger.debug(
        "Resolving completion",
        extra={
            "client_address": request.get("client_address_str"),
            "candidates": ",".join(config.candidate_models),
        },
    )
    try:
        completion = await resolve_completion(
            config.candidate_models,
            messages,
            groq_client.try_model,
            timeout_seconds=config.request_timeout_seconds,
        )
    except ProxyError as e:
        raise ProxyError(
            f"{failure_prefix}{e.message}", e.status_code, e.error_kind
        ) from e

    request["model_used"] = completion.model
    request["attempted_models"] = completion.attempted
    return completion


async def handle_health_check(request: web.Request) -> web.Response:
    return web.Response(
        text="OK",
        status=200,
        content_type="text/plain",
        headers={"Cache-Control": "no-cache"},
    )


async def handle_chat(request: web.Request) -> web.Response:
    """``POST /api/chat``: answer the latest user message for a topic."""
    body = await read_body(request, ChatRequest)
    if not body.topic:
        raise RequestValidationError("Please select a topic before chatting.")
    if not body.user_input or not body.user_input.strip():
        raise RequestValidationError("Message cannot be empty.")
    if not request.app["groq_client"].has_credentials:
        raise missing_api_key()

    completion_request = build_chat_request(body.topic, body.history, body.user_input)
    completion = await complete(
        request, completion_request, "Failed to get response: "
    )
    return web.json_response({"reply": completion.text})


async def handle_summarize(request: web.Request) -> web.Response:
    """``POST /api/summarize``: summarize a transcript for a newcomer."""
    body = await read_body(request, SummarizeRequest)
    if not request.app["groq_client"].has_credentials:
        raise missing_api_key()

    completion_request = build_summary_request(body.topic, body.history)
    completion = await complete(request, completion_request, "Failed to summarize: ")
    return web.json_response({"summary": completion.text})


async def handle_models(request: web.Request) -> web.Response:
    """``GET /api/models``: list the model ids visible to the configured key."""
    groq_client = request.app["groq_client"]
    if not groq_client.has_credentials:
        raise missing_api_key()

    config = request.app["config"]
    listing = await groq_client.list_models(
        timeout_seconds=config.request_timeout_seconds
    )
    return web.json_response(listing)
