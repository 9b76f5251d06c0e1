import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        token_secret: str,
        token_ttl_secs: int,
        bcrypt_rounds: int,
        cors_origins: list[str],
    ) -> None:
        self.database_url = database_url
        self.token_secret = token_secret
        self.token_ttl_secs = token_ttl_secs
        self.bcrypt_rounds = bcrypt_rounds
        self.cors_origins = cors_origins


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("FINTRACK_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _split_origins(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "fintrack.db"
    database_url = os.getenv("FINTRACK_DATABASE_URL", f"sqlite:///{default_db}")
    token_secret = os.getenv(
        "FINTRACK_TOKEN_SECRET",
        "5d0c1f3a9e7b42c8a1f64e2b7c93d08e6a5f1b2c3d4e5f60718293a4b5c6d7e8",
    )
    token_ttl_secs = int(os.getenv("FINTRACK_TOKEN_TTL_SECS", "3600"))
    bcrypt_rounds = int(os.getenv("FINTRACK_BCRYPT_ROUNDS", "10"))
    cors_origins = _split_origins(os.getenv("FINTRACK_CORS_ORIGINS", "*"))
    return Settings(
        database_url=database_url,
        token_secret=token_secret,
        token_ttl_secs=token_ttl_secs,
        bcrypt_rounds=bcrypt_rounds,
        cors_origins=cors_origins,
    )
