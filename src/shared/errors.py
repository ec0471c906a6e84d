"""Exception hierarchy shared by the server core and the tools."""

from typing import Optional

# Fragments of provider error messages that mean the token was rejected
AUTH_ERROR_MARKERS = ("invalid_grant", "invalid_client", "unauthorized", "forbidden")


class ToolServerError(Exception):
    """Base exception for the MCP tool server."""
    pass


class ProviderError(ToolServerError):
    """
    A call to an external provider failed.

    Attributes:
        message: Provider-supplied or transport error description
        status_code: HTTP status of the provider response, if any
    """

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)

    @property
    def is_auth_error(self) -> bool:
        """True when the provider rejected the credentials."""
        if self.status_code in (401, 403):
            return True
        lowered = self.message.lower()
        return any(marker in lowered for marker in AUTH_ERROR_MARKERS)


class ReauthRequired(ToolServerError):
    """The stored credential cannot be used or refreshed; the user must sign in again."""

    def __init__(self, user_id: str, tool_name: str, reason: str) -> None:
        self.user_id = user_id
        self.tool_name = tool_name
        self.reason = reason
        super().__init__(reason)


class InvalidParams(ToolServerError):
    """A JSON-RPC request carried missing or malformed params."""
    pass


class MethodNotFound(ToolServerError):
    """A JSON-RPC request named a method the server does not provide."""
    pass
