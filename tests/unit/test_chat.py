"""Unit tests for the chat service and chat agent factory."""

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from chef_rag.agents.chat_agent import build_chat_model, configure_chat_database, create_chat_agent
from chef_rag.models.models import RecipeDocument, RecipeMetadata
from chef_rag.services.chat import ChatService, augment_message, wants_recipe_context
from chef_rag.utils.errors import ConfigurationAbsentError, InvalidRequestError


def _message(role, content):
    msg = MagicMock()
    msg.role = role
    msg.content = content
    return msg


@pytest.fixture
def agent():
    mock = MagicMock()
    mock.arun = AsyncMock(return_value=MagicMock(content="Bạn có thể nấu trứng chiên!"))
    mock.get_chat_history.return_value = [
        _message("system", "instructions"),
        _message("user", "Hôm nay nấu gì?"),
        _message("assistant", "Bạn có thể nấu trứng chiên!"),
    ]
    return mock


@pytest.fixture
def chat_store():
    store = MagicMock()
    store.is_available.return_value = True
    store.search_recipes = AsyncMock(
        return_value=[RecipeDocument(id="1", text="t", metadata=RecipeMetadata(dish_name="Phở bò", description="Ngon"))]
    )
    return store


class TestRecipeContextHelpers:
    """Test keyword detection and message augmentation."""

    @pytest.mark.parametrize(
        "message, expected",
        [
            ("Cho tôi công thức phở", True),
            ("Món gì ngon?", True),
            ("Any RECIPE with eggs?", True),
            ("Xin chào", False),
        ],
    )
    def test_wants_recipe_context(self, message, expected):
        assert wants_recipe_context(message) is expected

    def test_augment_message_lists_recipes(self):
        documents = [RecipeDocument(id="1", text="t", metadata=RecipeMetadata(dish_name="Phở bò", description="Ngon"))]

        augmented = augment_message("Món gì?", documents)

        assert augmented.startswith("Món gì?")
        assert "Thông tin từ cơ sở dữ liệu" in augmented
        assert "1. Phở bò - Ngon" in augmented

    def test_augment_message_without_documents(self):
        assert augment_message("Món gì?", []) == "Món gì?"


class TestChat:
    """Test chat turns and session bookkeeping."""

    @pytest.mark.asyncio
    async def test_chat_creates_session_and_replies(self, agent, chat_store, settings):
        service = ChatService(agent, chat_store, settings)

        reply = await service.chat("user-1", "Hôm nay nấu gì?")

        assert reply.message == "Bạn có thể nấu trứng chiên!"
        assert reply.session_info.user_id == "user-1"
        assert reply.session_info.message_count == 3
        assert service.total_sessions() == 1
        agent.arun.assert_awaited_once_with(input="Hôm nay nấu gì?", user_id="user-1", session_id="user-1")

    @pytest.mark.asyncio
    async def test_recipe_question_is_augmented(self, agent, chat_store, settings):
        """Test that recipe keywords pull similar stored recipes into the prompt."""
        service = ChatService(agent, chat_store, settings)

        reply = await service.chat("user-1", "Gợi ý món phở")

        assert reply.rag_recipes == 1
        chat_store.search_recipes.assert_awaited_once_with("Gợi ý món phở", 3)
        assert "Phở bò - Ngon" in agent.arun.call_args.kwargs["input"]

    @pytest.mark.asyncio
    async def test_augmentation_failure_is_ignored(self, agent, chat_store, settings):
        chat_store.search_recipes.side_effect = RuntimeError("embedding down")
        service = ChatService(agent, chat_store, settings)

        reply = await service.chat("user-1", "Công thức gà nướng?")

        assert reply.rag_recipes == 0
        assert agent.arun.call_args.kwargs["input"] == "Công thức gà nướng?"

    @pytest.mark.asyncio
    async def test_augmentation_disabled(self, agent, chat_store, settings):
        settings.ENABLE_CHAT_RAG = False
        service = ChatService(agent, chat_store, settings)

        await service.chat("user-1", "Món gì ngon?")

        chat_store.search_recipes.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_credentials(self, agent, chat_store, settings):
        settings.GOOGLE_API_KEY = ""
        service = ChatService(agent, chat_store, settings)

        with pytest.raises(ConfigurationAbsentError):
            await service.chat("user-1", "Xin chào")

        agent.arun.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_message(self, agent, chat_store, settings):
        service = ChatService(agent, chat_store, settings)

        with pytest.raises(InvalidRequestError):
            await service.chat("user-1", "   ")

    @pytest.mark.asyncio
    async def test_history_lookup_failure_still_replies(self, agent, chat_store, settings):
        agent.get_chat_history.side_effect = RuntimeError("db locked")
        service = ChatService(agent, chat_store, settings)

        reply = await service.chat("user-1", "Xin chào")

        assert reply.session_info.message_count == 0


class TestSessions:
    """Test history, clearing, listing and idle cleanup."""

    @pytest.mark.asyncio
    async def test_history_for_unknown_user(self, agent, chat_store, settings):
        history = await ChatService(agent, chat_store, settings).get_chat_history("nobody")

        assert history.exists is False
        assert history.history == []

    @pytest.mark.asyncio
    async def test_history_filters_to_conversation(self, agent, chat_store, settings):
        service = ChatService(agent, chat_store, settings)
        await service.chat("user-1", "Hôm nay nấu gì?")

        history = await service.get_chat_history("user-1")

        assert history.exists is True
        assert [entry.role for entry in history.history] == ["user", "assistant"]
        assert history.message_count == 2

    @pytest.mark.asyncio
    async def test_clear_and_list_sessions(self, agent, chat_store, settings):
        service = ChatService(agent, chat_store, settings)
        await service.chat("user-1", "Xin chào")
        await service.chat("user-2", "Xin chào")

        assert sorted(info.user_id for info in service.list_sessions()) == ["user-1", "user-2"]
        assert service.clear_session("user-1") is True
        assert service.clear_session("user-1") is False
        assert service.total_sessions() == 1

    @pytest.mark.asyncio
    async def test_cleanup_removes_idle_sessions(self, agent, chat_store, settings):
        """Test that only sessions idle beyond the timeout are dropped."""
        service = ChatService(agent, chat_store, settings)
        await service.chat("idle", "Xin chào")
        await service.chat("active", "Xin chào")
        now = service._sessions["active"].last_activity
        service._sessions["idle"].last_activity = now - timedelta(seconds=settings.SESSION_INACTIVITY_TIMEOUT + 1)

        removed = service.cleanup_inactive_sessions(now=now)

        assert removed == 1
        assert [info.user_id for info in service.list_sessions()] == ["active"]


class TestChatAgentFactory:
    """Test agent construction for each provider and database."""

    def test_build_chat_model_per_provider(self, settings):
        with patch("chef_rag.agents.chat_agent.Gemini") as gemini, patch(
            "chef_rag.agents.chat_agent.OpenAIChat"
        ) as openai_chat:
            build_chat_model("gemini", settings)
            build_chat_model("openai", settings)

        assert gemini.call_args.kwargs["id"] == settings.GEMINI_CHAT_MODEL
        assert gemini.call_args.kwargs["temperature"] == settings.CHAT_TEMPERATURE
        assert openai_chat.call_args.kwargs["api_key"] == "test-openai-key"

    def test_build_chat_model_unknown(self, settings):
        with pytest.raises(ValueError):
            build_chat_model("anthropic", settings)

    def test_database_selection(self, settings):
        with patch("chef_rag.agents.chat_agent.SqliteDb") as sqlite_db, patch(
            "chef_rag.agents.chat_agent.PostgresDb"
        ) as postgres_db:
            configure_chat_database(settings)
            sqlite_db.assert_called_once_with(db_file=settings.CHAT_DB_FILE, id="chef_rag_chat_db")

            settings.DATABASE_URL = "postgresql+psycopg://user:pw@db.local/chef"
            configure_chat_database(settings)
            postgres_db.assert_called_once_with(db_url=settings.DATABASE_URL, id="chef_rag_chat_db")

        assert configure_chat_database(settings, use_db=False) is None

    def test_create_chat_agent_enables_history(self, settings):
        with patch("chef_rag.agents.chat_agent.Agent") as agent_cls, patch(
            "chef_rag.agents.chat_agent.SqliteDb"
        ), patch("chef_rag.agents.chat_agent.Gemini"):
            create_chat_agent(settings)

        kwargs = agent_cls.call_args.kwargs
        assert kwargs["add_history_to_context"] is True
        assert kwargs["num_history_runs"] == settings.MAX_HISTORY
        assert "Chef AI" in kwargs["instructions"]

    def test_stateless_agent_has_no_history(self, settings):
        with patch("chef_rag.agents.chat_agent.Agent") as agent_cls, patch("chef_rag.agents.chat_agent.Gemini"):
            create_chat_agent(settings, use_db=False)

        assert agent_cls.call_args.kwargs["db"] is None
        assert agent_cls.call_args.kwargs["add_history_to_context"] is False
