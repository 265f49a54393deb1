# cmdcards — configuration
# Override paths and endpoints via config/cmdcards.yaml or environment variables.
# Secrets never live in the file: only the names of the env vars holding them.

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import yaml

from .store import RowStore, SQLiteRowStore, InMemoryRowStore

logger = logging.getLogger(__name__)

CONFIG_PATH = Path(__file__).parent.parent / "config" / "cmdcards.yaml"
BACKENDS = ("sqlite", "rest", "memory")


@dataclass
class Config:
    """Runtime configuration for the card server and bot."""

    # Storage
    backend: str = "sqlite"
    db_path: str = "~/.local/share/cmdcards/cards.db"
    table: str = "cards"

    # REST backend (PostgREST / Supabase)
    rest_url: Optional[str] = None
    rest_key_env: str = "CMDCARDS_REST_KEY"
    rest_timeout: float = 10.0

    # HTTP API
    host: str = "127.0.0.1"
    port: int = 3000
    api_secret_env: str = "CMDCARDS_API_SECRET"

    # Telegram bot
    bot_token_env: str = "CMDCARDS_BOT_TOKEN"
    allowed_users: List[str] = field(default_factory=list)
    audit_log: str = "~/.local/share/cmdcards/audit.jsonl"
    list_limit: int = 15

    def resolve_paths(self):
        """Expand ~, apply env overrides, normalize values."""
        env_db = os.environ.get("CMDCARDS_DB")
        if env_db:
            self.db_path = env_db
        env_backend = os.environ.get("CMDCARDS_BACKEND")
        if env_backend:
            self.backend = env_backend
        self.backend = self.backend.strip().lower()
        if self.backend not in BACKENDS:
            logger.warning(f"Unknown backend '{self.backend}', using sqlite")
            self.backend = "sqlite"

        self.db_path = str(Path(self.db_path).expanduser())
        self.audit_log = str(Path(self.audit_log).expanduser())
        self.allowed_users = [str(uid) for uid in self.allowed_users or []]

    @property
    def api_secret(self) -> str:
        return os.environ.get(self.api_secret_env, "")

    @property
    def rest_key(self) -> str:
        return os.environ.get(self.rest_key_env, "")

    @property
    def bot_token(self) -> str:
        return os.environ.get(self.bot_token_env, "")

    @classmethod
    def load(cls, path: Optional[str] = None) -> "Config":
        """Load config from YAML file, falling back to defaults."""
        if path is None:
            path = os.environ.get("CMDCARDS_CONFIG")
        cfg_path = Path(path) if path else CONFIG_PATH
        if cfg_path.exists():
            try:
                with open(cfg_path, "r") as f:
                    data = yaml.safe_load(f) or {}
                if isinstance(data, dict):
                    cfg = cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})
                else:
                    logger.warning(f"Config {cfg_path} is not a mapping, using defaults")
                    cfg = cls()
            except (OSError, yaml.YAMLError, TypeError) as e:
                logger.warning(f"Cannot read config {cfg_path}: {e}, using defaults")
                cfg = cls()
        else:
            cfg = cls()
        cfg.resolve_paths()
        return cfg


def open_store(cfg: Config) -> RowStore:
    """Build the row store selected by the configuration."""
    if cfg.backend == "memory":
        return InMemoryRowStore()
    if cfg.backend == "rest":
        if not cfg.rest_url:
            raise ValueError("backend 'rest' requires rest_url")
        from .rest_store import RestRowStore
        return RestRowStore(cfg.rest_url, api_key=cfg.rest_key, timeout=cfg.rest_timeout)
    return SQLiteRowStore(cfg.db_path)
