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
Middleware module for the aiohttp application.

This module provides middlewares for:
- Access logging with request timing and the model that answered
- Permissive CORS headers and preflight handling
- Error handling (ProxyError and unexpected exceptions rendered as JSON)
"""

import time
from typing import Awaitable, Callable

from aiohttp import web

from ..logging_config import get_loggers
from .errors import ProxyError

# Get loggers for consistent logging throughout the application
app_logger, access_logger, _ = get_loggers()

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET,HEAD,PUT,PATCH,POST,DELETE",
}


def logging_middleware():
    """
    Middleware factory for access logging.

    Logs one line per request with its status, total duration, and, for
    completion endpoints, the model that answered and the models attempted.
    """

    @web.middleware
    async def middleware(
        request: web.Request, handler: Handler
    ) -> web.StreamResponse:
        start_time = time.perf_counter()
        client_address_str = f"{request.remote}"
        request["client_address_str"] = client_address_str
        access_logger.debug(
            f"[{client_address_str}] Incoming: {request.method} {request.path_qs}"
        )

        status = 500
        try:
            response = await handler(request)
            status = response.status
            return response
        except web.HTTPException as exc:
            status = exc.status
            raise
        finally:
            duration = time.perf_counter() - start_time
            attempted = request.get("attempted_models") or []
            access_logger.info(
                f"[{client_address_str}] {request.method} {request.path_qs} "
                f"-> {status} in {duration:.3f}s",
                extra={
                    "model": request.get("model_used"),
                    "attempts": len(attempted),
                    "attempted": attempted or None,
                },
            )

    return middleware


def cors_middleware():
    """
    Middleware factory for permissive CORS.

    Answers preflight requests directly and adds CORS headers to every
    response, including errors raised as aiohttp HTTP exceptions.
    """

    @web.middleware
    async def middleware(
        request: web.Request, handler: Handler
    ) -> web.StreamResponse:
        if (
            request.method == "OPTIONS"
            and "Access-Control-Request-Method" in request.headers
        ):
            response = web.Response(status=204)
            response.headers.update(CORS_HEADERS)
            requested_headers = request.headers.get("Access-Control-Request-Headers")
            if requested_headers:
                response.headers["Access-Control-Allow-Headers"] = requested_headers
            return response

        try:
            response = await handler(request)
        except web.HTTPException as exc:
            exc.headers.update(CORS_HEADERS)
            raise
        response.headers.update(CORS_HEADERS)
        return response

    return middleware


def error_handling_middleware():
    """
    Middleware factory for error handling.

    ProxyError subclasses become ``{"error": message}`` bodies with their
    own status. Anything else is logged with its traceback and reported as
    a generic 500 so no stack trace reaches the client.
    """

    @web.middleware
    async def middleware(
        request: web.Request, handler: Handler
    ) -> web.StreamResponse:
        client_address_str = request.get("client_address_str", "Unknown Client")

        try:
            return await handler(request)
        except web.HTTPException:
            raise
        except ProxyError as e:
            log = app_logger.warning if e.status_code < 500 else app_logger.error
            log(
                f"[{client_address_str}] {request.method} {request.path} failed: "
                f"{e.message}",
                extra={"error_kind": e.error_kind, "status": e.status_code},
            )
            return e.to_response()
        except Exception as e:
            app_logger.exception(
                f"[{client_address_str}] Unhandled exception in request handler: {e}"
            )
            return web.json_response({"error": "Internal Server Error"}, status=500)

    return middleware
