# messaging_client/auth.py
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

import httpx
import keyring
import keyring.errors
import pytz

from messaging_client.config import ClientConfig
from messaging_client.logger import get_logger


class SessionError(Exception):
    """The session store could not be read."""


@dataclass
class Session:
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None

    def expires_within(self, seconds: float, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        now = now or datetime.now(pytz.UTC)
        return self.expires_at - now < timedelta(seconds=seconds)


class SessionProvider(ABC):
    """Source of the signed-in user's credentials. Sign-in itself happens elsewhere."""

    @abstractmethod
    async def get_session(self) -> Optional[Session]:
        pass

    @abstractmethod
    async def refresh_session(self) -> Optional[Session]:
        pass


class KeyringSessionProvider(SessionProvider):
    """Keeps the session in the OS keyring and refreshes it against the auth service."""

    def __init__(self, config: ClientConfig, http_client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self.service = config.KEYRING_SERVICE
        self.http_client = http_client or httpx.AsyncClient(
            timeout=config.REQUEST_TIMEOUT_SECONDS
        )
        self.logger = get_logger("SessionProvider", config.LOG_LEVEL)

    async def get_session(self) -> Optional[Session]:
        try:
            access_token = keyring.get_password(self.service, "access_token")
            refresh_token = keyring.get_password(self.service, "refresh_token")
            stored_expiry = keyring.get_password(self.service, "token_expiry")
        except keyring.errors.KeyringError as e:
            raise SessionError(f"Error loading stored tokens: {str(e)}") from e

        if not access_token:
            return None

        expires_at = None
        if stored_expiry:
            try:
                expires_at = datetime.fromisoformat(stored_expiry)
                if expires_at.tzinfo is None:
                    expires_at = expires_at.replace(tzinfo=pytz.UTC)
            except (ValueError, TypeError):
                self.logger.warning("Invalid stored token expiry format, ignoring")
        return Session(access_token, refresh_token, expires_at)

    def store_session(self, session: Session) -> None:
        """Securely stores tokens using the keyring library."""
        keyring.set_password(self.service, "access_token", session.access_token)
        if session.refresh_token:
            keyring.set_password(self.service, "refresh_token", session.refresh_token)
        if session.expires_at:
            keyring.set_password(
                self.service, "token_expiry", session.expires_at.isoformat()
            )
        self.logger.info("Stored session securely")

    def clear(self) -> None:
        for key in ("access_token", "refresh_token", "token_expiry"):
            try:
                keyring.delete_password(self.service, key)
            except keyring.errors.PasswordDeleteError:
                pass  # Token doesn't exist
        self.logger.info("Cleared all stored tokens")

    async def refresh_session(self) -> Optional[Session]:
        try:
            refresh_token = keyring.get_password(self.service, "refresh_token")
        except keyring.errors.KeyringError as e:
            self.logger.error(f"Error loading refresh token: {str(e)}")
            return None
        if not refresh_token:
            self.logger.warning("No refresh token available.")
            return None

        try:
            response = await self.http_client.post(
                f"{self.config.AUTH_URL}/refresh",
                json={"refresh_token": refresh_token},
            )
        except httpx.HTTPError as e:
            self.logger.error(f"Exception during token refresh: {str(e)}")
            return None

        if response.status_code != 200:
            self.logger.error("Failed to refresh token.")
            self.clear()
            return None

        data = response.json()
        expires_at = None
        if data.get("expires_at"):
            expires_at = datetime.fromisoformat(data["expires_at"])
            if expires_at.tzinfo is None:
                expires_at = expires_at.replace(tzinfo=pytz.UTC)
        session = Session(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token", refresh_token),
            expires_at=expires_at,
        )
        self.store_session(session)
        self.logger.info("Token refreshed successfully.")
        return session

    async def aclose(self) -> None:
        await self.http_client.aclose()


class TokenManager:
    """Hands out a usable bearer token, refreshing the session when needed.

    A refresh happens when the session lookup fails or finds no session, or
    ahead of time when the token has less than ``refresh_margin_seconds``
    left. ``None`` means the caller is not authenticated and must not hit the
    network.
    """

    def __init__(self, provider: SessionProvider, refresh_margin_seconds: int = 60):
        self.provider = provider
        self.refresh_margin_seconds = refresh_margin_seconds
        self.logger = get_logger("TokenManager")

    async def get_token(self) -> Optional[str]:
        try:
            session = await self.provider.get_session()
        except SessionError as e:
            self.logger.warning(f"Session lookup failed, refreshing: {str(e)}")
            session = await self._refresh()
        else:
            if session is None:
                self.logger.info("No stored access token, refreshing")
                session = await self._refresh()
            elif session.expires_within(self.refresh_margin_seconds):
                self.logger.info("Access token about to expire, refreshing")
                session = await self._refresh()

        return session.access_token if session else None

    async def _refresh(self) -> Optional[Session]:
        try:
            return await self.provider.refresh_session()
        except Exception as e:
            self.logger.error(f"Token refresh failed: {str(e)}")
            return None
