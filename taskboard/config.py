# taskboard/config.py
import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv
from pydantic import BaseModel

# load .env file automatically
load_dotenv()


class Settings(BaseModel):
    database_url: str = "sqlite+aiosqlite:///./data/taskboard.db"
    jwt_secret: str = "change_this_secret"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 120
    uploads_dir: Path = Path("uploads")
    token_cookie: str = "token"
    cors_origins: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]
    broadcast_send_timeout: float = 5.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables, falling back to defaults."""
        defaults = cls()
        origins = os.getenv("CORS_ORIGINS")
        return cls(
            database_url=os.getenv("DATABASE_URL", defaults.database_url),
            jwt_secret=os.getenv("JWT_SECRET", defaults.jwt_secret),
            jwt_algorithm=os.getenv("JWT_ALGORITHM", defaults.jwt_algorithm),
            jwt_expire_minutes=int(os.getenv("JWT_EXPIRE_MINUTES", defaults.jwt_expire_minutes)),
            uploads_dir=Path(os.getenv("UPLOADS_DIR", str(defaults.uploads_dir))),
            token_cookie=os.getenv("TOKEN_COOKIE", defaults.token_cookie),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()] if origins else defaults.cors_origins,
            broadcast_send_timeout=float(os.getenv("BROADCAST_SEND_TIMEOUT", defaults.broadcast_send_timeout)),
            log_level=os.getenv("LOG_LEVEL", defaults.log_level),
        )
