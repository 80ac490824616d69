"""Chat agent factory for the cooking assistant.

Builds the Agno Agent that backs ChatService: model selection per
CHAT_PROVIDER, session persistence (SQLite or PostgreSQL) and history
replay. Recipe generation does not go through the agent.
"""

from typing import Optional

from agno.agent import Agent
from agno.db.postgres import PostgresDb
from agno.db.sqlite import SqliteDb
from agno.models.google import Gemini
from agno.models.openai import OpenAIChat

from chef_rag.prompts.prompts import get_chat_instructions
from chef_rag.utils.config import Config, config
from chef_rag.utils.logger import logger


def build_chat_model(provider: str, settings: Config):
    """Create the Agno model for a chat provider name.

    Raises:
        ValueError: Unknown provider name.
    """
    if provider == "gemini":
        return Gemini(
            id=settings.GEMINI_CHAT_MODEL,
            api_key=settings.GOOGLE_API_KEY,
            temperature=settings.CHAT_TEMPERATURE,
            max_output_tokens=settings.CHAT_MAX_OUTPUT_TOKENS,
        )
    if provider == "openai":
        return OpenAIChat(
            id=settings.OPENAI_CHAT_MODEL,
            api_key=settings.OPENAI_API_KEY,
            temperature=settings.CHAT_TEMPERATURE,
            max_tokens=settings.CHAT_MAX_OUTPUT_TOKENS,
        )
    raise ValueError(f"Chat provider '{provider}' not supported. Use 'gemini' or 'openai'.")


def configure_chat_database(settings: Config, use_db: bool = True):
    """Configure database for chat session persistence (SQLite or PostgreSQL).

    Args:
        settings: Application configuration.
        use_db: If False, return None (stateless mode).

    Returns:
        SqliteDb, PostgresDb or None.
    """
    if not use_db:
        logger.info("Chat persistence disabled (stateless mode)")
        return None

    if settings.DATABASE_URL:
        host = settings.DATABASE_URL.split("@")[1] if "@" in settings.DATABASE_URL else "..."
        logger.info(f"Using PostgreSQL for chat sessions: {host}")
        return PostgresDb(db_url=settings.DATABASE_URL, id="chef_rag_chat_db")

    logger.info(f"Using SQLite for chat sessions: {settings.CHAT_DB_FILE}")
    return SqliteDb(db_file=settings.CHAT_DB_FILE, id="chef_rag_chat_db")


def create_chat_agent(settings: Optional[Config] = None, use_db: bool = True) -> Agent:
    """Create the conversational cooking agent.

    Args:
        settings: Application configuration. Default: module config.
        use_db: Persist conversation history when True.

    Returns:
        Configured Agent. Sessions are keyed by user id at call time.
    """
    settings = settings or config
    db = configure_chat_database(settings, use_db)

    agent = Agent(
        model=build_chat_model(settings.CHAT_PROVIDER, settings),
        db=db,
        instructions=get_chat_instructions(),
        # History replay needs a database; stateless agents answer each turn alone
        add_history_to_context=db is not None,
        num_history_runs=settings.MAX_HISTORY,
        markdown=True,
        name="Chef AI",
        description="Conversational cooking assistant with recipe search context",
    )
    logger.info(f"✓ Chat agent configured ({settings.CHAT_PROVIDER}, history={settings.MAX_HISTORY} turns)")
    return agent
