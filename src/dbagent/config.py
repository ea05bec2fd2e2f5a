"""Runtime settings, read from the environment and an optional `.env` file."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All dbagent settings.  Every field can be overridden by an environment variable."""

    # Server
    API_PORT: int = 8000
    DEBUG: bool = False
    LOG_LEVEL: str = "info"

    # Model client
    MODEL_CLIENT: str = "openrouter"  # Options: openrouter, openai, anthropic
    OPENROUTER_API_KEY: str | None = None
    OPENAI_API_KEY: str | None = None
    ANTHROPIC_API_KEY: str | None = None
    LLM_BASE_URL: str = "https://openrouter.ai/api/v1"
    LLM_MODEL: str = "qwen/qwen-2.5-72b-instruct"
    OPENAI_MODEL: str = "gpt-4o-mini"
    ANTHROPIC_MODEL: str = "claude-3-5-haiku-latest"
    LLM_MAX_TOKENS: int = 1000
    LLM_TEMPERATURE: float = 0.7
    LLM_TIMEOUT: float = 60.0
    LLM_APP_URL: str = "http://localhost:8000"  # OpenRouter attribution headers
    LLM_APP_TITLE: str = "dbagent"

    # Document store
    MONGO_URI: str = "mongodb://localhost:27017/dbagent"
    MONGO_DB: str | None = None  # Falls back to the database named in MONGO_URI

    # Conversations idle for longer than this many seconds are dropped
    CONVERSATION_IDLE_TIMEOUT: float = 1800.0

    class Config:
        """Where pydantic-settings looks besides the process environment."""

        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
