from typing import Optional

from pydantic import BaseModel, Field

from unitrack.schemas.camel_base_model import CamelCaseBaseModel


class PageState(BaseModel):
    """Client-side pagination metadata for a PaginatedCollectionCache"""

    current_page: int = Field(..., description="Current page number")
    page_size: int = Field(..., description="Items per page")
    total_items: int = Field(..., description="Total number of items")
    total_pages: int = Field(..., description="Total number of pages")
    has_next: bool = Field(..., description="Whether there's a next page")
    has_prev: bool = Field(..., description="Whether there's a previous page")


class AggregateCounters(BaseModel):
    """Two running sums over the full, unpaged collection"""

    sum_a: int = 0
    sum_b: int = 0


class ServerPagination(CamelCaseBaseModel):
    """Pagination block returned by the course/student list endpoints"""

    current_page: int = 1
    total_pages: int = 0
    total_courses: Optional[int] = None
    total_students: Optional[int] = None
    total_sessions: Optional[int] = None
    has_next: bool = False
    has_prev: bool = False
