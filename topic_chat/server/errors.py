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
Error taxonomy for the completion proxy.

Every failure the proxy can surface is a ProxyError carrying the HTTP status
it maps to. The error handling middleware renders these as ``{"error": ...}``
JSON bodies so clients never see a traceback.
"""

from __future__ import annotations

from aiohttp import web


class ProxyError(Exception):
    """Base class for failures rendered to the client as JSON."""

    status_code = 500
    error_kind = "proxy_error"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_kind: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if error_kind is not None:
            self.error_kind = error_kind

    def to_response(self) -> web.Response:
        return web.json_response({"error": self.message}, status=self.status_code)


class ConfigurationError(ProxyError):
    error_kind = "configuration"


class RequestValidationError(ProxyError):
    status_code = 400
    error_kind = "validation"


class UpstreamError(ProxyError):
    """A failed call to the upstream completion API."""

    error_kind = "upstream"


class UpstreamHTTPError(UpstreamError):
    """The upstream API answered with a non-success status."""

    error_kind = "http_status"

    def __init__(self, upstream_status: int, body: str):
        super().__init__(f"Groq API error {upstream_status}: {body}")
        self.upstream_status = upstream_status
        self.body = body


class UpstreamTimeoutError(UpstreamError):
    error_kind = "timeout"

    def __init__(self, target: str, timeout_seconds: float):
        super().__init__(f"Request to {target} timed out after {timeout_seconds:g}s")
        self.target = target
        self.timeout_seconds = timeout_seconds


class UpstreamTransportError(UpstreamError):
    error_kind = "transport"


class EmptyCompletionError(UpstreamError):
    error_kind = "empty_completion"

    def __init__(self, message: str = "No content returned from Groq"):
        super().__init__(message)


class MalformedResponseError(UpstreamError):
    error_kind = "malformed_response"


def missing_api_key() -> ConfigurationError:
    return ConfigurationError("Server missing GROQ_API_KEY.")


def no_candidate_models() -> ConfigurationError:
    return ConfigurationError("No valid model available to complete the request.")
