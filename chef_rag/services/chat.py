"""Chat service: per-user conversational sessions on top of the chat agent."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional

from agno.agent import Agent
from pydantic import ValidationError

from chef_rag.models.models import (
    ChatHistory,
    ChatHistoryEntry,
    ChatMessage,
    ChatReply,
    RecipeDocument,
    SessionInfo,
)
from chef_rag.store.vector_store import VectorStore
from chef_rag.utils.config import Config, config
from chef_rag.utils.errors import ConfigurationAbsentError, InvalidRequestError
from chef_rag.utils.logger import logger
from chef_rag.utils.safe import safe_execute_async, safe_execute_sync

RAG_KEYWORDS = ("công thức", "món", "recipe")
CHAT_RAG_LIMIT = 3


def wants_recipe_context(message: str) -> bool:
    """True when the message asks about dishes or recipes."""
    lowered = message.lower()
    return any(keyword in lowered for keyword in RAG_KEYWORDS)


def augment_message(message: str, documents: list[RecipeDocument]) -> str:
    """Append stored recipes to the user message as database context."""
    if not documents:
        return message
    lines = [
        f"{idx}. {doc.metadata.dish_name} - {doc.metadata.description or 'N/A'}"
        for idx, doc in enumerate(documents, start=1)
    ]
    return (
        f"{message}\n\n"
        f"[Thông tin từ cơ sở dữ liệu: tìm thấy {len(documents)} công thức liên quan]\n" + "\n".join(lines)
    )


class _Session:
    __slots__ = ("created_at", "last_activity")

    def __init__(self, now: datetime) -> None:
        self.created_at = now
        self.last_activity = now


class ChatService:
    """Keeps one conversation per user id.

    Session bookkeeping (created_at, last_activity) lives in memory;
    the messages themselves are persisted by the agent's database, keyed
    by session_id = user_id.
    """

    def __init__(self, agent: Agent, store: VectorStore, settings: Optional[Config] = None) -> None:
        self.agent = agent
        self.store = store
        self.settings = settings or config
        self._sessions: dict[str, _Session] = {}

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    def is_available(self) -> bool:
        return bool(self.settings.api_key_for(self.settings.CHAT_PROVIDER))

    def _get_or_create_session(self, user_id: str) -> _Session:
        session = self._sessions.get(user_id)
        if session is None:
            session = _Session(self._now())
            self._sessions[user_id] = session
            logger.info("New chat session", extra={"user_id": user_id})
        return session

    def _history(self, user_id: str) -> list:
        return safe_execute_sync(
            lambda: self.agent.get_chat_history(session_id=user_id) or [],
            "Chat history lookup",
            default_return=[],
        )

    def _session_info(self, user_id: str, session: _Session, message_count: Optional[int] = None) -> SessionInfo:
        return SessionInfo(
            user_id=user_id,
            created_at=session.created_at,
            last_activity=session.last_activity,
            message_count=message_count,
        )

    async def _recipe_context(self, message: str) -> list[RecipeDocument]:
        if not (self.settings.ENABLE_CHAT_RAG and self.store.is_available() and wants_recipe_context(message)):
            return []
        documents = await safe_execute_async(
            self.store.search_recipes(message, CHAT_RAG_LIMIT),
            "Chat RAG enhancement",
            default_return=[],
        )
        if documents:
            logger.info(f"Chat enhanced with {len(documents)} recipes")
        return documents

    async def chat(self, user_id: str, message: str) -> ChatReply:
        """Send a message in the user's session and return the agent's reply.

        Raises:
            ConfigurationAbsentError: Chat provider has no API key.
            InvalidRequestError: Empty user id, empty or oversized message.
        """
        try:
            request = ChatMessage(user_id=user_id, message=message)
        except ValidationError as e:
            raise InvalidRequestError(f"Invalid chat message: {e.errors()[0]['msg']}") from e
        if not self.is_available():
            raise ConfigurationAbsentError(
                f"CHAT_PROVIDER={self.settings.CHAT_PROVIDER} has no API key configured"
            )

        session = self._get_or_create_session(request.user_id)
        session.last_activity = self._now()

        documents = await self._recipe_context(request.message)
        prompt = augment_message(request.message, documents)

        response = await self.agent.arun(input=prompt, user_id=request.user_id, session_id=request.user_id)
        reply = response.content if isinstance(response.content, str) else str(response.content or "")

        message_count = len(await asyncio.to_thread(self._history, request.user_id))
        logger.info("Chat reply sent", extra={"user_id": request.user_id})
        return ChatReply(
            message=reply,
            session_info=self._session_info(request.user_id, session, message_count),
            rag_recipes=len(documents),
        )

    async def get_chat_history(self, user_id: str) -> ChatHistory:
        session = self._sessions.get(user_id)
        if session is None:
            return ChatHistory(exists=False)

        messages = await asyncio.to_thread(self._history, user_id)
        history = [
            ChatHistoryEntry(role=msg.role, content=str(msg.content))
            for msg in messages
            if msg.role in ("user", "assistant") and msg.content
        ]
        return ChatHistory(
            exists=True,
            message_count=len(history),
            history=history,
            session_info=self._session_info(user_id, session, len(history)),
        )

    def clear_session(self, user_id: str) -> bool:
        """Forget the in-memory session. Persisted messages are kept."""
        removed = self._sessions.pop(user_id, None) is not None
        if removed:
            logger.info("Chat session cleared", extra={"user_id": user_id})
        return removed

    def list_sessions(self) -> list[SessionInfo]:
        return [self._session_info(user_id, session) for user_id, session in self._sessions.items()]

    def total_sessions(self) -> int:
        return len(self._sessions)

    def cleanup_inactive_sessions(self, now: Optional[datetime] = None) -> int:
        """Drop sessions idle longer than SESSION_INACTIVITY_TIMEOUT.

        Returns:
            Number of sessions removed.
        """
        now = now or self._now()
        limit = timedelta(seconds=self.settings.SESSION_INACTIVITY_TIMEOUT)
        expired = [user_id for user_id, session in self._sessions.items() if now - session.last_activity > limit]
        for user_id in expired:
            del self._sessions[user_id]
        if expired:
            logger.info(f"Cleaned up {len(expired)} inactive chat sessions")
        return len(expired)

    async def run_cleanup_loop(self, interval: Optional[float] = None) -> None:
        """Periodically clean up idle sessions until cancelled."""
        interval = interval or self.settings.SESSION_INACTIVITY_TIMEOUT
        while True:
            await asyncio.sleep(interval)
            self.cleanup_inactive_sessions()
