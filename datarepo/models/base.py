from datetime import datetime
from typing import ClassVar

from sqlalchemy import DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    type_annotation_map = {}

    # 타임스탬프 컬럼 이름은 Mixin에서 선언 (Base가 MRO상 Mixin보다 앞에 오므로 여기엔 두지 않음)

    @classmethod
    def timestamp_columns(cls) -> tuple[str | None, str | None]:
        """(created_at column, updated_at column) declared by the timestamp mixins."""
        return getattr(cls, "created_at_column", None), getattr(cls, "updated_at_column", None)

    @classmethod
    def is_timestamped(cls) -> bool:
        """True when the record type declares a creation or update timestamp column."""
        return any(column is not None for column in cls.timestamp_columns())

    @classmethod
    def default_sort_column(cls) -> str:
        """Column used when no explicit sort column is given."""
        return cls.timestamp_columns()[0] or "id"

    def __repr__(self) -> str:
        """
        디버깅 시 객체의 주요 정보를 문자열로 반환
        예: <Author id=1 name='Kim' ...>
        """
        cols = []
        for col in self.__table__.columns:
            val = self.__dict__.get(col.key)
            # 날짜나 너무 긴 값은 포맷팅
            if isinstance(val, datetime):
                val = val.isoformat()
            if isinstance(val, str) and len(val) > 20:
                val = val[:17] + "..."

            cols.append(f"{col.name}={val}")

        return f"<{self.__class__.__name__} {', '.join(cols)}>"


class CreatedAtMixin:
    """생성 시간만 필요한 경우 (예: 로그, 이력 테이블)"""

    created_at_column: ClassVar[str | None] = "created_at"

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=func.now(), server_default=func.now(), nullable=False
    )


class TimestampMixin(CreatedAtMixin):
    """수정 시간도 필요한 경우 (예: 회원, 게시글)"""

    updated_at_column: ClassVar[str | None] = "updated_at"

    # CreatedAtMixin을 상속받았으므로 created_at은 자동으로 포함됨
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=func.now(), onupdate=func.now(), server_default=func.now(), nullable=True
    )
