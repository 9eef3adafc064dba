#!/usr/bin/env python3
"""
Configuration management for the Yemzo backend.
"""

import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

_DEFAULT_DB_PATH = os.path.join(os.path.dirname(__file__), "..", "data", "yemzo.db")


class Config:
    """Configuration class for the application."""

    # Database
    DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{os.path.abspath(_DEFAULT_DB_PATH)}")

    # Order bot language model (OpenAI-compatible chat completions)
    OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
    OPENAI_API_URL = os.getenv("OPENAI_API_URL", "https://api.openai.com/v1/chat/completions")
    OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    LLM_TIMEOUT = float(os.getenv("LLM_TIMEOUT", 10))

    # Redis Configuration (real-time fan-out across workers)
    REDIS_URL = os.getenv("REDIS_URL")
    REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
    REDIS_PORT = int(os.getenv("REDIS_PORT", 6379))
    REDIS_DB = int(os.getenv("REDIS_DB", 0))

    # Real-time layer: auto | redis | local
    REALTIME_BACKEND = os.getenv("REALTIME_BACKEND", "auto").lower()
    NOTIFY_TIMEOUT = float(os.getenv("NOTIFY_TIMEOUT", 0.5))

    # Application Configuration
    SEARCH_PAGE_SIZE = int(os.getenv("SEARCH_PAGE_SIZE", 30))
    ENVIRONMENT = os.getenv("ENVIRONMENT", "production").lower()

    @classmethod
    def llm_enabled(cls) -> bool:
        """Call the remote model only with a real key, unless USE_LLM says otherwise."""
        use_llm_env = os.getenv("USE_LLM")
        if use_llm_env is not None:
            return use_llm_env.lower() in ("1", "true", "yes") and bool(cls.OPENAI_API_KEY)
        key = cls.OPENAI_API_KEY
        return bool(key) and key not in ("test", "dev")

    @classmethod
    def is_development(cls) -> bool:
        return cls.ENVIRONMENT == "development"

    @classmethod
    def debug_print(cls):
        print(f"[CONFIG] DATABASE_URL={cls.DATABASE_URL}")
        print(f"[CONFIG] OPENAI_MODEL={cls.OPENAI_MODEL} set={bool(cls.OPENAI_API_KEY)} timeout={cls.LLM_TIMEOUT}s")
        print(f"[CONFIG] REALTIME_BACKEND={cls.REALTIME_BACKEND} redis={cls.REDIS_URL or f'{cls.REDIS_HOST}:{cls.REDIS_PORT}/{cls.REDIS_DB}'}")
        print(f"[CONFIG] ENVIRONMENT={cls.ENVIRONMENT}")

    @classmethod
    def validate(cls):
        """Validate that the configuration is usable."""
        problems = []

        if cls.LLM_TIMEOUT <= 0:
            problems.append("LLM_TIMEOUT must be positive")
        if cls.NOTIFY_TIMEOUT <= 0:
            problems.append("NOTIFY_TIMEOUT must be positive")
        if cls.SEARCH_PAGE_SIZE <= 0:
            problems.append("SEARCH_PAGE_SIZE must be positive")
        if cls.REALTIME_BACKEND not in ("auto", "redis", "local"):
            problems.append(f"unknown REALTIME_BACKEND '{cls.REALTIME_BACKEND}'")

        if problems:
            raise ValueError(f"Invalid configuration: {', '.join(problems)}")

        return True

# Validate configuration on import
Config.validate()
