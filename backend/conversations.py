# In-memory conversation store. History lives for the lifetime of the process.

import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass
class StoredMessage:
    role: str
    content: str
    timestamp: float = field(default_factory=time.time)


@dataclass
class Conversation:
    id: str
    created_at: float = field(default_factory=time.time)
    messages: List[StoredMessage] = field(default_factory=list)


class ConversationManager:
    """
    Keeps chat history per conversation id so follow-up questions reach the
    model with their earlier turns. Handlers run on FastAPI's threadpool, so
    every access goes through a lock.
    """

    def __init__(self):
        self._conversations: Dict[str, Conversation] = {}
        self._lock = threading.Lock()

    def create_conversation(self) -> str:
        conversation_id = str(uuid.uuid4())
        with self._lock:
            self._conversations[conversation_id] = Conversation(id=conversation_id)
        return conversation_id

    def ensure(self, conversation_id: str) -> None:
        """Register a client-supplied id the first time it is seen."""
        with self._lock:
            if conversation_id not in self._conversations:
                self._conversations[conversation_id] = Conversation(id=conversation_id)

    def exists(self, conversation_id: str) -> bool:
        with self._lock:
            return conversation_id in self._conversations

    def add_message(self, conversation_id: str, role: str, content: str) -> None:
        with self._lock:
            conversation = self._conversations.get(conversation_id)
            if conversation is not None:
                conversation.messages.append(StoredMessage(role=role, content=content))

    def add_turn(self, conversation_id: str, user_content: str, assistant_content: str) -> None:
        """Append a question and its answer under one lock, as adjacent messages."""
        with self._lock:
            conversation = self._conversations.get(conversation_id)
            if conversation is not None:
                conversation.messages.append(StoredMessage(role="user", content=user_content))
                conversation.messages.append(StoredMessage(role="assistant", content=assistant_content))

    def get_history(self, conversation_id: str) -> List[dict]:
        """Messages as {"role", "content"} dicts, oldest first."""
        with self._lock:
            conversation = self._conversations.get(conversation_id)
            if conversation is None:
                return []
            return [{"role": m.role, "content": m.content} for m in conversation.messages]

    def cleanup(self, max_age_secs: float = 60 * 60, now: Optional[float] = None) -> int:
        """Drop conversations created more than `max_age_secs` ago. Returns how many went."""
        cutoff = (time.time() if now is None else now) - max_age_secs
        with self._lock:
            expired = [cid for cid, c in self._conversations.items() if c.created_at < cutoff]
            for cid in expired:
                del self._conversations[cid]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._conversations)


conversation_manager = ConversationManager()
