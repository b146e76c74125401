# votechain/config.py
# Central place for settings and constants

import os
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()


def _split_origins(raw: str) -> List[str]:
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


# --- Admin & JWT ---
# No default admin key: admin endpoints stay locked until ADMIN_KEY is set.
ADMIN_KEY = os.getenv("ADMIN_KEY") or None
SECRET_KEY = os.getenv("SECRET_KEY", "a_very_secret_key_for_dev_only")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

# --- CORS ---
ALLOWED_ORIGINS = _split_origins(
    os.getenv("ALLOWED_ORIGINS", "http://localhost:3000,http://localhost:5173")
)

# --- Rate limits (requests per window, window in seconds) ---
GENERAL_RATE_LIMIT = int(os.getenv("GENERAL_RATE_LIMIT", "100"))
GENERAL_RATE_WINDOW = int(os.getenv("GENERAL_RATE_WINDOW", str(15 * 60)))
VOTE_RATE_LIMIT = int(os.getenv("VOTE_RATE_LIMIT", "1"))
VOTE_RATE_WINDOW = int(os.getenv("VOTE_RATE_WINDOW", "60"))

# Digests shown on the results page are cut to this many hex chars
HASH_DISPLAY_LENGTH = int(os.getenv("HASH_DISPLAY_LENGTH", "16"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


class Settings(BaseModel):
    admin_key: Optional[str] = ADMIN_KEY
    secret_key: str = SECRET_KEY
    algorithm: str = ALGORITHM
    access_token_expire_minutes: int = Field(default=ACCESS_TOKEN_EXPIRE_MINUTES, gt=0)
    allowed_origins: List[str] = Field(default_factory=lambda: list(ALLOWED_ORIGINS))
    general_rate_limit: int = Field(default=GENERAL_RATE_LIMIT, gt=0)
    general_rate_window: int = Field(default=GENERAL_RATE_WINDOW, gt=0)
    vote_rate_limit: int = Field(default=VOTE_RATE_LIMIT, gt=0)
    vote_rate_window: int = Field(default=VOTE_RATE_WINDOW, gt=0)
    hash_display_length: int = Field(default=HASH_DISPLAY_LENGTH, gt=0)
    log_level: str = LOG_LEVEL


def get_settings() -> Settings:
    return Settings()
