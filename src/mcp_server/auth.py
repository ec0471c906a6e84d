"""Authentication and Authorization for MCP Server.

Handles:
- Caller identity (userId query parameter, or a signed bearer token)
- Tool authorization (per-user subscription allowlist)
"""

from datetime import timedelta
from typing import Optional

from fastapi import HTTPException, status
from jose import JWTError, jwt

from shared.logging import get_logger
from shared.models import ToolDescriptor, ToolSubscription, utcnow
from mcp_server.store import CredentialStore

logger = get_logger(__name__)

ALGORITHM = "HS256"


class AuthorizationGate:
    """
    Decides which tools a user may see and call.

    Both operations apply the same rule: a subscription row must exist
    for (user, tool), and when ``require_authorized_flag`` is set its
    ``authorized`` flag must also be true.
    """

    def __init__(self, store: CredentialStore, require_authorized_flag: bool = False) -> None:
        self.store = store
        self.require_authorized_flag = require_authorized_flag

    def _permits(self, subscription: Optional[ToolSubscription]) -> bool:
        if subscription is None:
            return False
        if self.require_authorized_flag:
            return subscription.authorized
        return True

    async def filter_visible(
        self,
        user_id: str,
        tools: list[ToolDescriptor]
    ) -> list[ToolDescriptor]:
        """
        Return the tools the user is subscribed to, in the given order.

        Args:
            user_id: Calling user
            tools: All registered descriptors

        Returns:
            Subsequence of ``tools``
        """
        subscriptions = await self.store.list_subscriptions(user_id)
        allowed = {s.tool_name for s in subscriptions if self._permits(s)}
        visible = [tool for tool in tools if tool.name in allowed]

        logger.debug(
            "Filtered tools for user",
            user=user_id,
            visible=[t.name for t in visible]
        )
        return visible

    async def authorize(self, user_id: str, tool_name: str) -> bool:
        """Check if a user may call a tool."""
        subscription = await self.store.get_subscription(user_id, tool_name)
        allowed = self._permits(subscription)

        if allowed:
            logger.debug("Access granted", tool=tool_name, user=user_id)
        else:
            logger.warning("Access denied (not subscribed)", tool=tool_name, user=user_id)
        return allowed


class IdentityResolver:
    """
    Works out which user a request acts for.

    Without ``require_auth`` the ``userId`` query parameter is trusted.
    With it, a ``Bearer`` JWT signed with the server secret is required
    and its ``sub`` claim is the user id.
    """

    def __init__(self, secret_key: str, require_auth: bool = False) -> None:
        self.secret_key = secret_key
        self.require_auth = require_auth

    def create_token(self, user_id: str, expire_minutes: int = 60) -> str:
        """Issue a token for a user, used by tooling and tests."""
        payload = {
            "sub": user_id,
            "exp": utcnow() + timedelta(minutes=expire_minutes),
        }
        return jwt.encode(payload, self.secret_key, algorithm=ALGORITHM)

    def verify_token(self, token: str) -> str:
        """
        Verify a JWT and return its subject.

        Raises:
            HTTPException: If the token is invalid, expired or has no subject
        """
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[ALGORITHM])
        except JWTError as e:
            logger.warning("Token verification failed", error=str(e))
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid authentication token",
                headers={"WWW-Authenticate": "Bearer"},
            )

        subject = payload.get("sub")
        if not subject:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token has no subject",
                headers={"WWW-Authenticate": "Bearer"},
            )
        return subject

    def resolve(self, query_user_id: Optional[str], authorization: Optional[str]) -> Optional[str]:
        """
        Resolve the acting user id.

        Args:
            query_user_id: Value of the ``userId`` query parameter
            authorization: Raw ``Authorization`` header

        Returns:
            The user id, or None when no identity was supplied and auth is optional
        """
        if not self.require_auth:
            return query_user_id or None

        if not authorization:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Authentication required",
                headers={"WWW-Authenticate": "Bearer"},
            )

        scheme, _, token = authorization.partition(" ")
        if scheme.lower() != "bearer" or not token:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid Authorization header format, expected 'Bearer <token>'",
                headers={"WWW-Authenticate": "Bearer"},
            )

        return self.verify_token(token)
