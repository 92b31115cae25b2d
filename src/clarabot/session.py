"""The conversation session: an owned, ordered message history."""

import logging
import threading
from typing import Any, Dict, List, Optional

from .models import SYSTEM_ROLE, ChatMessage, Conversation

logger = logging.getLogger(__name__)


class Session:
    """Single-writer owner of one conversation.

    Messages are append-only and replayed to the model in insertion order.
    Callers that mutate the history hold ``lock`` for the whole turn.
    """

    def __init__(self, conversation: Optional[Conversation] = None):
        self.conversation = conversation if conversation is not None else Conversation()
        self.lock = threading.RLock()

    @property
    def id(self) -> str:
        return self.conversation.id

    @property
    def messages(self) -> List[ChatMessage]:
        """A copy of the history; mutating it does not affect the session."""
        with self.lock:
            return list(self.conversation.messages)

    def __len__(self) -> int:
        return len(self.conversation.messages)

    def append(self, message: ChatMessage) -> None:
        with self.lock:
            logger.debug("Appending %s message to %s", message.role, self.id)
            self.conversation.messages.append(message)

    def reset(self, system_prompt: Optional[str] = None) -> None:
        """Discards every turn, optionally seeding a fresh system message."""
        with self.lock:
            logger.debug("Resetting conversation %s", self.id)
            self.conversation.messages = []
            if system_prompt is not None:
                self.conversation.messages.append(
                    ChatMessage(role=SYSTEM_ROLE, content=system_prompt)
                )

    def to_payload(self) -> List[Dict[str, Any]]:
        with self.lock:
            return [message.to_payload() for message in self.conversation.messages]
