import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv


# =============================================================================
# 1. Environment Loading (최상위 .env 자동 탐색)
# =============================================================================
def get_project_root() -> Path:
    """
    Locate the project root by walking up from this file until a directory
    holding `.env` or `.git` is found.
    """
    current_path = Path(__file__).resolve()
    for parent in current_path.parents:
        if (parent / ".env").exists() or (parent / ".git").exists():
            return parent
    return current_path.parents[2]  # Fallback


PROJECT_ROOT = get_project_root()
ENV_PATH = PROJECT_ROOT / ".env"

if ENV_PATH.exists():
    load_dotenv(ENV_PATH)
else:
    load_dotenv()  # 시스템 환경변수 사용


# =============================================================================
# 2. Helper Functions
# =============================================================================
def get_env(key: str, default: Any = None, cast_to: type = str) -> Any:
    """Read an environment variable and cast it, falling back to `default`."""
    value = os.getenv(key)
    if value is None:
        return default

    if cast_to is bool:
        return value.lower() in ("true", "1", "yes", "on")
    if cast_to is list:
        return [x.strip() for x in value.split(",") if x.strip()]
    try:
        return cast_to(value)
    except (ValueError, TypeError):
        return default


# =============================================================================
# 3. Database Configuration
# =============================================================================
DB_CONFIG = {
    "url": get_env("DATABASE_URL"),
    "host": get_env("PG_HOST", get_env("DB_HOST", "localhost")),
    "port": get_env("PG_PORT", get_env("DB_PORT", "5432")),
    "user": get_env("PG_USER", get_env("DB_USER", "postgres")),
    "password": get_env("PG_PASSWORD", get_env("DB_PASSWORD", "")),
    "database": get_env("PG_DATABASE", get_env("DB_NAME", "postgres")),
    "pool_size": get_env("DB_POOL_SIZE", 20, int),
    "max_overflow": get_env("DB_MAX_OVERFLOW", 10, int),
    "pool_timeout": get_env("DB_POOL_TIMEOUT", 30, int),
    "pool_recycle": get_env("DB_POOL_RECYCLE", 3600, int),
}

# =============================================================================
# 4. Repository Configuration
# =============================================================================
REPOSITORY_CONFIG = {
    "default_page_size": get_env("REPOSITORY_DEFAULT_PAGE_SIZE", 15, int),
    "echo": get_env("DB_ECHO", False, bool),
}

if REPOSITORY_CONFIG["default_page_size"] < 1:
    raise RuntimeError(
        f"Invalid REPOSITORY_DEFAULT_PAGE_SIZE: {REPOSITORY_CONFIG['default_page_size']}. Must be >= 1"
    )

# =============================================================================
# 5. Logging Configuration
# =============================================================================
LOG_CONFIG = {
    "level": get_env("LOG_LEVEL", "INFO"),
    "format": get_env("LOG_FORMAT", "%(asctime)s [%(levelname)s] %(name)s: %(message)s"),
    "datefmt": get_env("LOG_DATEFMT", "%H:%M:%S"),
}
