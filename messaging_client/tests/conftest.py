# messaging_client/tests/conftest.py
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytz

from messaging_client.api_client import ApiClient, ApiResponse
from messaging_client.core import MessagingCore
from messaging_client.notifications import NotificationSound
from messaging_client.realtime import RealtimeClient
from messaging_client.state import MessagingState

BASE_TIME = datetime(2024, 6, 1, 22, 0, tzinfo=pytz.UTC)


def at(minutes):
    return (BASE_TIME + timedelta(minutes=minutes)).isoformat()


def profile_data(user_id):
    return {
        "id": user_id,
        "full_name": f"{user_id} Fullname",
        "display_name": user_id,
        "avatar_url": f"https://cdn.example.com/{user_id}.png",
    }


def message_data(message_id, conversation_id="c1", sender_id="u2", content="hello",
                 minutes=0, with_sender=True, **overrides):
    data = {
        "id": message_id,
        "conversation_id": conversation_id,
        "sender_id": sender_id,
        "content": content,
        "is_edited": False,
        "is_deleted": False,
        "created_at": at(minutes),
        "updated_at": at(minutes),
    }
    if with_sender:
        data["sender"] = profile_data(sender_id)
    data.update(overrides)
    return data


def conversation_data(conversation_id, members=("u1", "u2"), minutes=0, unread_count=0,
                      last_message=None, muted_for=(), name=None):
    return {
        "id": conversation_id,
        "name": name,
        "is_group": len(members) > 2,
        "created_by": members[0],
        "created_at": at(minutes),
        "updated_at": at(minutes),
        "participants": [
            {
                "id": f"p-{conversation_id}-{user_id}",
                "conversation_id": conversation_id,
                "user_id": user_id,
                "role": "admin" if user_id == members[0] else "member",
                "joined_at": at(0),
                "left_at": None,
                "is_muted": user_id in muted_for,
                "last_read_at": at(0),
                "profile": profile_data(user_id),
            }
            for user_id in members
        ],
        "last_message": last_message,
        "unread_count": unread_count,
    }


def broadcast(payload, event="new_message"):
    return {"type": "broadcast", "event": event, "payload": payload}


def change_row(row, event="INSERT"):
    row = {k: v for k, v in row.items() if k != "sender"}
    return {
        "type": "postgres_changes",
        "event": event,
        "schema": "public",
        "table": "messages",
        "new": row,
    }


def ok(data, status_code=200):
    return ApiResponse(True, data=data, status_code=status_code)


def failed(status_code, error=None):
    return ApiResponse(False, status_code=status_code, error=error)


def unauthenticated():
    return ApiResponse(False, error="Not authenticated", authenticated=False)


@pytest.fixture
def api():
    api = AsyncMock(spec=ApiClient)
    api.get_conversations.return_value = ok([
        conversation_data("c2", minutes=10, unread_count=3, members=("u1", "u3")),
        conversation_data("c1", minutes=0, unread_count=2),
    ])
    api.get_messages.return_value = ok([])
    api.mark_as_read.return_value = ok({"success": True})
    return api


@pytest.fixture
def realtime():
    realtime = RealtimeClient(reconnect_delay=0.01)
    realtime.publish = AsyncMock(return_value=True)
    return realtime


@pytest.fixture
def player():
    return MagicMock()


@pytest.fixture
def sound(player):
    return NotificationSound(player=player)


@pytest.fixture
def core(api, realtime, sound):
    return MessagingCore(api, realtime, state=MessagingState(), notification_sound=sound)


@pytest.fixture
async def loaded_core(core):
    """Core for user u1 with conversations c2 (newest) and c1 loaded."""
    core.state.set_current_user("u1")
    await core.fetch_conversations()
    return core


async def deliver(core, conversation_id, envelope):
    await core._channels[conversation_id].dispatch(envelope)
