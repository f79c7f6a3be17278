"""
공통 모듈 (Common Module)

Repository와 Database 양쪽에서 공유하는 핵심 컴포넌트:
- config: 전역 설정 (DB 접속 정보, 페이지 크기, 로깅)
- enums: 정렬 방향 등 공용 열거형
- utils: 시계(Clock) 주입, 로깅 설정
"""

from .config import DB_CONFIG, LOG_CONFIG, REPOSITORY_CONFIG
from .enums import SortDirection
from .utils import Clock, configure_logging, fixed_clock, utc_now

__all__ = [
    "DB_CONFIG",
    "REPOSITORY_CONFIG",
    "LOG_CONFIG",
    "SortDirection",
    "Clock",
    "utc_now",
    "fixed_clock",
    "configure_logging",
]
