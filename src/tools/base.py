"""Helpers shared by tool handlers.

Handlers:
- Return a ``ToolResult`` for every outcome, errors included
- Talk to providers through ``ProviderClient``
- Run OAuth-backed calls through ``call_provider`` so stale tokens are
  refreshed and an auth rejection is retried exactly once
"""

from typing import Any, Awaitable, Callable, Optional

import httpx

from shared.errors import ProviderError, ReauthRequired
from shared.logging import get_logger
from shared.models import Credential, TextContent, ToolDescriptor, ToolResult
from mcp_server.registry import ToolContext

logger = get_logger(__name__)


def text_result(text: str) -> ToolResult:
    """Create a success result."""
    return ToolResult(content=[TextContent(text=text)])


def error_result(text: str) -> ToolResult:
    """Create an error result."""
    return ToolResult(content=[TextContent(text=text)], is_error=True)


def user_prefix(context: ToolContext) -> str:
    return f"[User: {context.user_id}] " if context.user_id else ""


def describe_provider_error(response: httpx.Response) -> str:
    """
    Pull a readable message out of a provider error response.

    Understands Google API errors, OAuth errors and Uber errors, and
    falls back to the status line.
    """
    try:
        payload = response.json()
    except ValueError:
        return f"HTTP {response.status_code}: {response.text[:200]}".rstrip(": ")

    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict):
            # Google: {"error": {"code": 401, "message": "...", "status": "UNAUTHENTICATED"}}
            message = error.get("message") or error.get("status")
            if message:
                return str(message)
        if isinstance(error, str):
            description = payload.get("error_description")
            return f"{error}: {description}" if description else error
        if payload.get("message"):
            code = payload.get("code")
            return f"{code}: {payload['message']}" if code else str(payload["message"])

    return f"HTTP {response.status_code}"


class ProviderClient:
    """
    JSON-over-HTTP client for a provider API.

    Wraps the shared ``httpx.AsyncClient``; every failure surfaces as a
    ``ProviderError`` carrying the HTTP status when there was one.
    """

    def __init__(self, http: httpx.AsyncClient, base_url: str = "") -> None:
        self._http = http
        self.base_url = base_url.rstrip("/")

    async def request(
        self,
        method: str,
        path: str,
        access_token: Optional[str] = None,
        authorization: Optional[str] = None,
        headers: Optional[dict[str, str]] = None,
        **kwargs: Any
    ) -> Any:
        """
        Make a request and return the decoded JSON body.

        Args:
            method: HTTP method
            path: Path appended to ``base_url``, or an absolute URL
            access_token: OAuth bearer token
            authorization: Full ``Authorization`` header, for non-bearer schemes
            headers: Extra headers
            **kwargs: Passed to ``httpx.AsyncClient.request``

        Raises:
            ProviderError: On transport failure or an error status
        """
        url = path if path.startswith("http") else f"{self.base_url}{path}"
        request_headers = {"Accept": "application/json"}
        if access_token:
            request_headers["Authorization"] = f"Bearer {access_token}"
        elif authorization:
            request_headers["Authorization"] = authorization
        if headers:
            request_headers.update(headers)

        try:
            response = await self._http.request(method, url, headers=request_headers, **kwargs)
        except httpx.TransportError as e:
            raise ProviderError(f"Network error: {e}") from e

        if response.status_code >= 400:
            raise ProviderError(describe_provider_error(response), status_code=response.status_code)

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise ProviderError("Provider returned a non-JSON response", response.status_code) from e


async def call_provider(
    context: ToolContext,
    tool: ToolDescriptor,
    operation: Callable[[Credential], Awaitable[ToolResult]],
    action: str
) -> ToolResult:
    """
    Run an OAuth-backed provider operation for the calling user.

    Args:
        context: Handler context
        tool: Descriptor of the calling tool; its name keys the credential
        operation: Provider call that builds the result from a credential
        action: Phrase for failure messages, e.g. "send email"

    Returns:
        The operation's result, or an ``isError`` result telling the user
        to re-authenticate or describing the provider failure
    """
    try:
        return await context.tokens.call_with_refresh(context.user_id, tool.name, operation)
    except ReauthRequired as e:
        logger.warning("Re-authentication required", user=context.user_id, tool=tool.name, reason=e.reason)
        return error_result(f"❌ {e.reason.rstrip('.')}. Please re-authenticate {tool.label}.")
    except ProviderError as e:
        logger.error(
            "Provider call failed",
            user=context.user_id,
            tool=tool.name,
            status_code=e.status_code,
            error=e.message
        )
        return error_result(f"❌ Failed to {action}: {e.message}")
