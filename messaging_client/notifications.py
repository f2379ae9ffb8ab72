# messaging_client/notifications.py
import sys
from typing import Callable, Optional

from messaging_client.logger import get_logger


def terminal_bell() -> None:
    sys.stdout.write("\a")
    sys.stdout.flush()


class NotificationSound:
    """Incoming-message sound, gated until the user has interacted once.

    Playback stays disabled until :meth:`unlock` is called from a user action,
    mirroring platforms that refuse audio before a user gesture.
    """

    def __init__(self, player: Optional[Callable[[], None]] = None):
        self.player = player or terminal_bell
        self.unlocked = False
        self.logger = get_logger("NotificationSound")

    def unlock(self) -> None:
        self.unlocked = True

    def play(self) -> bool:
        if not self.unlocked:
            return False
        try:
            self.player()
        except Exception as e:
            self.logger.warning(f"Could not play notification sound: {str(e)}")
            return False
        return True
