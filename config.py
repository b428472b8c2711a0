import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

# Read a local .env if there is one. Real environment variables win.
load_dotenv(override=False)


def _env(name: str, default: str = "") -> str:
    value = os.getenv(name)
    return default if value is None or value.strip() == "" else value.strip()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [part.strip() for part in raw.replace(",", " ").split() if part.strip()]


@dataclass(frozen=True)
class Settings:
    # --- Database ---
    database_url: str = "sqlite:///./tasks.db"

    # --- JWT ---
    # Replace this secret with a strong, random string in every real deployment
    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60

    # --- Session cookie ---
    session_cookie_name: str = "taskmanager.sid"
    session_max_age_seconds: int = 24 * 60 * 60
    session_cookie_secure: bool = False
    session_cookie_samesite: str = "lax"
    session_cookie_domain: str | None = None

    # --- CORS ---
    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:3000"])
    cors_origin_regex: str | None = None

    # --- Misc ---
    graphiql: bool = True
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            database_url=_env("DATABASE_URL", "sqlite:///./tasks.db"),
            jwt_secret=_env("JWT_SECRET", "change-me"),
            jwt_algorithm=_env("JWT_ALGORITHM", "HS256"),
            access_token_expire_minutes=_env_int("ACCESS_TOKEN_EXPIRE_MINUTES", 60),
            session_cookie_name=_env("SESSION_COOKIE_NAME", "taskmanager.sid"),
            session_max_age_seconds=_env_int("SESSION_MAX_AGE_SECONDS", 24 * 60 * 60),
            session_cookie_secure=_env_bool("SESSION_COOKIE_SECURE", False),
            session_cookie_samesite=_env("SESSION_COOKIE_SAMESITE", "lax").lower(),
            session_cookie_domain=_env("SESSION_COOKIE_DOMAIN") or None,
            cors_origins=_env_list("CORS_ORIGINS", ["http://localhost:3000"]),
            cors_origin_regex=_env("CORS_ORIGIN_REGEX") or None,
            graphiql=_env_bool("GRAPHIQL", True),
            log_level=_env("LOG_LEVEL", "INFO").upper(),
        )


settings = Settings.from_env()
