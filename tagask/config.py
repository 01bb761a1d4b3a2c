from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    LOG_LEVEL: str = "INFO"

    # Microsoft Graph settings
    GRAPH_API_BASE_URL: str = "https://graph.microsoft.com/v1.0"
    GRAPH_REQUEST_TIMEOUT: float = 30.0
    GRAPH_MAX_RETRIES: int = 3

    # =================================================================
    # STORAGE SETTINGS - leaderboard and question history collections
    # =================================================================
    STORAGE_BACKEND: str = "json"  # "json" or "redis"
    DATA_DIR: str = "data"
    LEADERBOARD_FILE: str = "leaderboard.json"
    HISTORY_FILE: str = "question_history.json"
    REDIS_URL: str | None = None
    REDIS_KEY_PREFIX: str = "tagask"
    STORE_LOCK_TIMEOUT: float = 10.0  # seconds

    # Summarization settings
    SUMMARIZER_BACKEND: str = "flow"  # "flow" or "openai"
    SUMMARY_FLOW_URL: str | None = None
    SUMMARY_FLOW_API_KEY: str | None = None
    SUMMARY_TIMEOUT_SECONDS: float = 60.0
    OPENAI_API_KEY: str | None = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_MAX_TOKENS: int = 600
    OPENAI_TEMPERATURE: float = 0.2

    # Question history
    HISTORY_TOP_LIMIT: int = 5

    # Proxy handling for request context
    TRUST_X_FORWARDED_FOR: bool = False
    TRUSTED_PROXY_IPS: list[str] = []

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def ledger_path(self) -> Path:
        return Path(self.DATA_DIR) / self.LEADERBOARD_FILE

    def history_path(self) -> Path:
        return Path(self.DATA_DIR) / self.HISTORY_FILE

    def get_store_config(self) -> dict:
        """
        Get collection store configuration.
        Adjust environment-specific settings based on self.environment.
        """
        config = {
            "backend": self.STORAGE_BACKEND.lower(),
            "lock_timeout": self.STORE_LOCK_TIMEOUT,
            "key_prefix": self.REDIS_KEY_PREFIX,
        }

        if self.environment == "development":
            # Local runs never wait long on a stuck lock
            config["lock_timeout"] = min(self.STORE_LOCK_TIMEOUT, 5.0)

        return config


settings = Settings()
