"""Application configuration.

Environment variables override all defaults. Values are read once when a
Settings object is constructed; the app factory builds one and injects it.
"""

import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv

_BACKEND_DIR = Path(__file__).resolve().parents[2]
load_dotenv(dotenv_path=_BACKEND_DIR / ".env", override=False)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    def __init__(self):
        # Database Configuration
        self.DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./ibrl.db")

        # Chain + market collaborators
        self.SOLANA_RPC_URL: str = os.getenv("SOLANA_RPC_URL", "https://api.mainnet-beta.solana.com")
        self.PYTH_HERMES_URL: str = os.getenv("PYTH_HERMES_URL", "https://hermes.pyth.network")
        self.PYTH_SOL_USD_FEED_ID: str = os.getenv(
            "PYTH_SOL_USD_FEED_ID",
            "ef0d8b6fda2ceba41da15d4095d1da392a0d2f8ed0c6c7bc0f4cfac8c280b56d",
        )
        self.JUPITER_API_URL: str = os.getenv("JUPITER_API_URL", "https://lite-api.jup.ag/swap/v1")

        # Every outbound HTTP call is bounded; RPC forwarding was observed at ~12s
        self.HTTP_TIMEOUT_SECONDS: float = float(os.getenv("HTTP_TIMEOUT_SECONDS", "12"))
        self.HTTP_MAX_RETRIES: int = int(os.getenv("HTTP_MAX_RETRIES", "2"))

        # Groq API Key (Must be set via .env, never in code)
        self.GROQ_API_KEY: str = os.getenv("GROQ_API_KEY", "")

        # Autonomy loop
        self.AUTONOMY_ENABLED: bool = _env_bool("AUTONOMY_ENABLED", True)
        self.TICK_INTERVAL_SECONDS: int = int(os.getenv("TICK_INTERVAL_SECONDS", "60"))
        self.TICK_INITIAL_DELAY_SECONDS: int = int(os.getenv("TICK_INITIAL_DELAY_SECONDS", "10"))
        self.TICK_MAX_WORKERS: int = int(os.getenv("TICK_MAX_WORKERS", "4"))
        self.OWNER_EVAL_TIMEOUT_SECONDS: float = float(os.getenv("OWNER_EVAL_TIMEOUT_SECONDS", "45"))

        # Proposal freshness: pending proposals older than this must be refreshed before sending
        self.PROPOSAL_STALE_SECONDS: int = int(os.getenv("PROPOSAL_STALE_SECONDS", "120"))
        self.PRICE_CACHE_SECONDS: int = int(os.getenv("PRICE_CACHE_SECONDS", "15"))
        self.PRICE_SAMPLE_RETENTION_HOURS: int = int(os.getenv("PRICE_SAMPLE_RETENTION_HOURS", "24"))

        # CORS (Restrictive - specific origins only, no wildcards)
        self.CORS_ORIGINS: List[str] = [
            origin.strip()
            for origin in os.getenv(
                "CORS_ORIGINS",
                "http://localhost:3000,http://127.0.0.1:3000",
            ).split(",")
            if origin.strip()
        ]

        # Rate Limiting
        self.RATE_LIMIT_REQUESTS: int = int(os.getenv("RATE_LIMIT_REQUESTS", "100"))
        self.RATE_LIMIT_WINDOW_SECONDS: int = int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "60"))

        self.ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
        self.DEBUG: bool = self.ENVIRONMENT == "development"

    @property
    def proposal_stale_ms(self) -> int:
        return self.PROPOSAL_STALE_SECONDS * 1000


settings = Settings()
