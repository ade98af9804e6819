"""Runtime settings read from the process environment."""

import os
from dataclasses import dataclass, field
from typing import List


def _flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    database_url: str = "mongodb://localhost:27017"
    database_name: str = "grocer"
    jwt_secret: str = ""
    jwt_expires_days: int = 7
    session_secret: str = ""
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"
    log_json: bool = False
    port: int = 8000
    bcrypt_rounds: int = 12

    @classmethod
    def from_env(cls) -> "Settings":
        jwt_secret = os.getenv("JWT_SECRET", "")
        origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
        return cls(
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            database_name=os.getenv("DATABASE_NAME", cls.database_name),
            jwt_secret=jwt_secret,
            jwt_expires_days=int(os.getenv("JWT_EXPIRES_DAYS", "7")),
            session_secret=os.getenv("SESSION_SECRET") or jwt_secret,
            cors_origins=origins or ["*"],
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_json=_flag(os.getenv("LOG_JSON", "")),
            port=int(os.getenv("PORT", "8000")),
            bcrypt_rounds=int(os.getenv("BCRYPT_ROUNDS", "12")),
        )
