import asyncio
import sys

from messaging_client.app import MessagingApp
from messaging_client.state import StateEvent


async def main(user_id: str) -> None:
    app = MessagingApp()
    state = app.state
    state.subscribe(
        StateEvent.MESSAGE_RECEIVED,
        lambda data: print(f"{data['message'].sender_id}: {data['message'].content}"),
    )
    state.subscribe(
        StateEvent.UNREAD_COUNT_UPDATED,
        lambda data: print(f"Unread: {data['new_count']}"),
    )
    state.subscribe(StateEvent.ERROR_CHANGED, lambda data: data["error"] and print(data["error"]))

    core = await app.start(user_id)
    try:
        for conversation in state.conversations:
            print(f"{conversation.id}  {conversation.name or 'Direct'}  ({conversation.unread_count})")
        if state.conversations:
            await core.select_conversation(state.conversations[0].id)
        await asyncio.Event().wait()
    finally:
        await app.close()


if __name__ == "__main__":
    if len(sys.argv) != 2:
        sys.exit("usage: main.py <user_id>")
    try:
        asyncio.run(main(sys.argv[1]))
    except KeyboardInterrupt:
        pass
