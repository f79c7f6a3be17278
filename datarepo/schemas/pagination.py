from typing import Generic, TypeVar

from pydantic import BaseModel, Field


T = TypeVar("T")


class PagedResult(BaseModel, Generic[T]):
    """
    Generic paginated result.

    Returned by BaseRepository.paginate(). Pages are 1-indexed; a page past the
    last one has no items but still reports the correct total.

    Example:
        ```json
        {
            "total": 42,
            "page": 2,
            "page_size": 15,
            "items": [...]
        }
        ```
    """

    items: list[T] = Field(default_factory=list, description="Entities of the requested page")
    total: int = Field(..., ge=0, description="Total number of matching items")
    page_size: int = Field(..., ge=1, description="Items per page")
    page: int = Field(..., ge=1, description="Current page number (1-indexed)")

    @property
    def offset(self) -> int:
        """Number of items skipped before this page."""
        return (self.page - 1) * self.page_size

    @property
    def total_pages(self) -> int:
        """Calculate total number of pages."""
        return (self.total + self.page_size - 1) // self.page_size

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self.page > 1
