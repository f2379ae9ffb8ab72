# messaging_client/tests/test_app.py
from unittest.mock import MagicMock

import pytest

from messaging_client.app import MessagingApp
from messaging_client.auth import Session, SessionProvider
from messaging_client.config import ClientConfig
from messaging_client.notifications import NotificationSound


class StaticProvider(SessionProvider):
    async def get_session(self):
        return Session("token-a")

    async def refresh_session(self):
        return None


@pytest.mark.asyncio
async def test_app_wires_session_from_config():
    config = ClientConfig(
        API_BASE_URL="http://api.test",
        REDIS_HOST="redis.test",
        REDIS_PORT=6380,
        SEND_TIMEOUT_SECONDS=3.0,
    )

    app = MessagingApp(config, session_provider=StaticProvider())

    assert app.api_client.base_url == "http://api.test"
    assert app.realtime.host == "redis.test"
    assert app.realtime.port == 6380
    assert app.core.send_timeout == 3.0
    assert app.core.state is app.state
    assert await app.token_manager.get_token() == "token-a"
    await app.close()


def test_sound_plays_only_after_unlock():
    player = MagicMock()
    sound = NotificationSound(player=player)

    assert sound.play() is False
    sound.unlock()
    assert sound.play() is True
    player.assert_called_once()


def test_sound_failure_is_reported_not_raised():
    sound = NotificationSound(player=MagicMock(side_effect=OSError("no audio device")))
    sound.unlock()

    assert sound.play() is False
