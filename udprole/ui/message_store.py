import threading
import time
from typing import Dict, List, Optional

from udprole.ui.models import Message


class MessageStore:
    """
    Bounded in-memory message log shared by the receive thread and readers.
    """

    def __init__(self, lock: Optional[threading.Lock] = None, max_messages: int = 1000):
        self._lock = lock or threading.Lock()
        self._messages: List[Message] = []
        self._last_id = 0
        self.max_messages = max_messages

    def _next_id(self) -> int:
        self._last_id += 1
        return self._last_id

    def store(self, direction: str, peer: str, text: str) -> Message:
        with self._lock:
            msg = Message(
                id=self._next_id(),
                direction=direction,
                peer=peer,
                text=text,
                ts=time.time(),
            )
            self._messages.append(msg)
            if len(self._messages) > self.max_messages:
                self._messages = self._messages[-self.max_messages:]
            return msg

    def messages_since(self, after_id: int) -> List[Message]:
        with self._lock:
            return [m for m in self._messages if m.id > after_id]

    def __len__(self) -> int:
        with self._lock:
            return len(self._messages)

    def serialize_message(self, msg: Message) -> Dict:
        return {
            "id": msg.id,
            "direction": msg.direction,
            "peer": msg.peer,
            "text": msg.text,
            "ts": msg.ts,
            "iso": time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(msg.ts)),
        }

    def serialize_messages(self, messages: List[Message]) -> List[Dict]:
        return [self.serialize_message(msg) for msg in messages]
