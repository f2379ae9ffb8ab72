# messaging_client/app.py
import logging
from typing import Optional

from messaging_client.api_client import ApiClient
from messaging_client.auth import KeyringSessionProvider, SessionProvider, TokenManager
from messaging_client.config import ClientConfig
from messaging_client.core import MessagingCore
from messaging_client.logger import get_logger
from messaging_client.notifications import NotificationSound
from messaging_client.realtime import RealtimeClient
from messaging_client.state import MessagingState


class MessagingApp:
    """Builds one messaging session from configuration.

    The session provider defaults to the OS keyring; tests and embedders can
    pass their own.
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        session_provider: Optional[SessionProvider] = None,
    ) -> None:
        self.config = config or ClientConfig()
        self.logger: logging.Logger = get_logger("MessagingApp", self.config.LOG_LEVEL)

        self.session_provider = session_provider or KeyringSessionProvider(self.config)
        self.token_manager = TokenManager(
            self.session_provider, self.config.TOKEN_REFRESH_MARGIN_SECONDS
        )
        self.api_client = ApiClient(
            self.config.API_BASE_URL,
            self.token_manager,
            timeout=self.config.REQUEST_TIMEOUT_SECONDS,
        )
        self.realtime = RealtimeClient(
            host=self.config.REDIS_HOST,
            port=self.config.REDIS_PORT,
            reconnect_delay=self.config.REALTIME_RECONNECT_DELAY_SECONDS,
        )
        self.state = MessagingState()
        self.core = MessagingCore(
            self.api_client,
            self.realtime,
            state=self.state,
            notification_sound=NotificationSound(),
            send_timeout=self.config.SEND_TIMEOUT_SECONDS,
        )

    async def start(self, user_id: str) -> MessagingCore:
        self.logger.info(f"Starting messaging session for {user_id}")
        await self.core.start(user_id)
        return self.core

    async def close(self) -> None:
        await self.core.close()
        if isinstance(self.session_provider, KeyringSessionProvider):
            await self.session_provider.aclose()
        self.logger.info("Messaging session closed")
