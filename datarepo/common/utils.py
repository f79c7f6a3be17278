"""
Common utilities shared by the database and repository layers.
"""

import logging
from collections.abc import Callable
from datetime import UTC, datetime

from .config import LOG_CONFIG


logger = logging.getLogger(__name__)

# 현재 시각을 반환하는 함수 (테스트에서 고정 시각 주입용)
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Timezone-aware current UTC time. Default clock for repositories."""
    return datetime.now(UTC)


def fixed_clock(instant: datetime) -> Clock:
    """
    Build a clock that always returns `instant`.

    Example:
        >>> clock = fixed_clock(datetime(2026, 1, 1, 9, 0))
        >>> clock() == clock()
        True
    """

    def _clock() -> datetime:
        return instant

    return _clock


def configure_logging(level: str | None = None) -> None:
    """Apply LOG_CONFIG to the root logger. Call once from entry points."""
    logging.basicConfig(
        level=getattr(logging, (level or LOG_CONFIG["level"]).upper(), logging.INFO),
        format=LOG_CONFIG["format"],
        datefmt=LOG_CONFIG["datefmt"],
    )
    logger.debug("Logging configured")
