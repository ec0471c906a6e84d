"""Token lifecycle management for provider-backed tools.

A stored credential is either valid (expiry beyond the guard window) or
stale. Stale credentials are refreshed against the tool's OAuth provider
and persisted before use. Refreshes are serialized per (user, tool) so
concurrent callers share one refresh instead of racing.
"""

import asyncio
import weakref
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional, Protocol, TypeVar

from shared.errors import ProviderError, ReauthRequired
from shared.logging import get_logger
from shared.models import Credential, utcnow
from mcp_server.oauth import TokenGrant, TokenRefreshError
from mcp_server.store import CredentialStore

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_GUARD_SECONDS = 300
DEFAULT_LIFETIME_SECONDS = 3600


class TokenRefresher(Protocol):
    """Anything able to run a refresh grant, usually an ``OAuthProvider``."""

    async def refresh(self, refresh_token: str) -> TokenGrant:
        ...


class TokenLifecycleManager:
    """
    Keeps per-(user, tool) OAuth credentials usable.

    Responsibilities:
    - Decide whether a stored access token is stale
    - Refresh stale tokens and persist the result
    - Retry a provider call once after an authentication failure
    """

    def __init__(
        self,
        store: CredentialStore,
        providers: dict[str, TokenRefresher],
        tool_providers: dict[str, str],
        guard_seconds: int = DEFAULT_GUARD_SECONDS,
        default_lifetime_seconds: int = DEFAULT_LIFETIME_SECONDS
    ) -> None:
        """
        Args:
            store: Credential persistence
            providers: Provider name to refresher
            tool_providers: Tool name to provider name
            guard_seconds: Lead time before expiry at which a token is stale
            default_lifetime_seconds: Lifetime assumed when the provider omits ``expires_in``
        """
        self.store = store
        self._providers = providers
        self._tool_providers = tool_providers
        self.guard = timedelta(seconds=guard_seconds)
        self.default_lifetime = timedelta(seconds=default_lifetime_seconds)
        # Entries vanish once no caller holds or waits on the lock
        self._locks: weakref.WeakValueDictionary[tuple[str, str], asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def is_valid(self, credential: Credential, now: Optional[datetime] = None) -> bool:
        """True when the access token can be used without refreshing."""
        if not credential.access_token or credential.expires_at is None:
            return False
        now = now or utcnow()
        return credential.expires_at - now > self.guard

    def _lock_for(self, user_id: str, tool_name: str) -> asyncio.Lock:
        key = (user_id, tool_name)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    async def ensure_fresh(
        self,
        user_id: str,
        tool_name: str,
        force: bool = False,
        rejected_token: Optional[str] = None
    ) -> Credential:
        """
        Return a credential whose access token is usable.

        Args:
            user_id: Owner of the credential
            tool_name: Tool the credential belongs to
            force: Refresh even if the cached expiry says the token is valid
            rejected_token: Access token the provider just rejected; if the
                stored token already differs, another caller refreshed it

        Returns:
            The stored credential, or the refreshed one

        Raises:
            ReauthRequired: No credential, no refresh token, or the refresh failed
        """
        credential = await self.store.get_credential(user_id, tool_name)
        if credential is None:
            raise ReauthRequired(user_id, tool_name, "No access or refresh token found")

        if not force and self.is_valid(credential):
            return credential

        async with self._lock_for(user_id, tool_name):
            # Re-read under the lock: a concurrent caller may have refreshed already
            current = await self.store.get_credential(user_id, tool_name)
            if current is None:
                raise ReauthRequired(user_id, tool_name, "No access or refresh token found")

            if force:
                if (
                    rejected_token is not None
                    and current.access_token != rejected_token
                    and self.is_valid(current)
                ):
                    return current
            elif self.is_valid(current):
                return current

            return await self._refresh(current)

    async def _refresh(self, credential: Credential) -> Credential:
        user_id, tool_name = credential.user_id, credential.tool_name

        if not credential.refresh_token:
            raise ReauthRequired(
                user_id, tool_name, "Access token expired and no refresh token found"
            )

        provider_name = self._tool_providers.get(tool_name)
        provider = self._providers.get(provider_name) if provider_name else None
        if provider is None:
            raise ReauthRequired(
                user_id, tool_name, f"No OAuth provider configured for tool '{tool_name}'"
            )

        logger.info("Refreshing access token", user=user_id, tool=tool_name, provider=provider_name)
        try:
            grant = await provider.refresh(credential.refresh_token)
        except TokenRefreshError as e:
            logger.warning(
                "Token refresh failed",
                user=user_id,
                tool=tool_name,
                status_code=e.status_code,
                error=e.message
            )
            raise ReauthRequired(user_id, tool_name, f"Failed to refresh token: {e.message}") from e

        lifetime = timedelta(seconds=grant.expires_in) if grant.expires_in else self.default_lifetime
        refreshed = credential.model_copy(update={
            "access_token": grant.access_token,
            "refresh_token": grant.refresh_token or credential.refresh_token,
            "expires_at": utcnow() + lifetime,
        })
        await self.store.save_credential(refreshed)
        return refreshed

    async def call_with_refresh(
        self,
        user_id: str,
        tool_name: str,
        operation: Callable[[Credential], Awaitable[T]]
    ) -> T:
        """
        Run a provider call, refreshing and retrying once on an auth failure.

        Args:
            user_id: Calling user
            tool_name: Tool whose credential is used
            operation: Provider call taking the credential to use

        Returns:
            Whatever ``operation`` returns

        Raises:
            ReauthRequired: No usable credential could be obtained
            ProviderError: The call failed for a non-auth reason, or failed again after the retry
        """
        credential = await self.ensure_fresh(user_id, tool_name)
        try:
            return await operation(credential)
        except ProviderError as e:
            if not e.is_auth_error:
                raise
            logger.warning(
                "Access token rejected, refreshing and retrying once",
                user=user_id,
                tool=tool_name,
                status_code=e.status_code
            )
            rejected = credential.access_token

        credential = await self.ensure_fresh(
            user_id, tool_name, force=True, rejected_token=rejected
        )
        return await operation(credential)
