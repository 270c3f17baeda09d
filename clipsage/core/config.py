"""Runtime configuration loaded from the environment and an optional .env file."""

import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

# Load environment variables
load_dotenv()

DEFAULT_DB_PATH = "~/.clipsage/clipsage.db"
DEFAULT_OLLAMA_API_BASE = "http://localhost:11434"


def _optional_float(value: Optional[str]) -> Optional[float]:
    if value is None or value.strip() == "":
        return None
    return float(value)


class Settings(BaseModel):
    """Engine settings. Use ``Settings.from_env()`` to read the environment."""

    db_path: str = DEFAULT_DB_PATH
    embed_provider: str = "ollama"  # ollama|litellm|hash
    ollama_api_base: str = DEFAULT_OLLAMA_API_BASE
    embedding_model: str = "nomic-embed-text"
    summary_model: str = "llama3.2"
    litellm_embedding_model: str = "ollama/nomic-embed-text"
    # None means no timeout: a hung provider stalls the caller.
    request_timeout: Optional[float] = None
    semantic_window: int = 1000
    search_limit: int = 50
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            db_path=os.getenv("CLIPSAGE_DB_PATH", DEFAULT_DB_PATH),
            embed_provider=os.getenv("EMBED_PROVIDER", "ollama").lower(),
            ollama_api_base=os.getenv("OLLAMA_API_BASE", DEFAULT_OLLAMA_API_BASE),
            embedding_model=os.getenv("EMBEDDING_MODEL", "nomic-embed-text"),
            summary_model=os.getenv("SUMMARY_MODEL", "llama3.2"),
            litellm_embedding_model=os.getenv(
                "LITELLM_EMBEDDING_MODEL", "ollama/nomic-embed-text"
            ),
            request_timeout=_optional_float(os.getenv("REQUEST_TIMEOUT")),
            semantic_window=int(os.getenv("SEMANTIC_WINDOW", "1000")),
            search_limit=int(os.getenv("SEARCH_LIMIT", "50")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

    @property
    def resolved_db_path(self) -> str:
        if self.db_path == ":memory:":
            return self.db_path
        return os.path.expanduser(self.db_path)
