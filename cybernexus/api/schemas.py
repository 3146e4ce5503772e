"""
Response envelopes shared by the routers.
"""

from typing import Callable, Generic, List, Optional, TypeVar

from pydantic import BaseModel

from cybernexus.core.architecture.base_repository import PageResult

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    """One page of a listing"""
    items: List[T]
    total_pages: int
    current_page: int
    total: int

    @classmethod
    def from_result(cls, result: PageResult, convert: Optional[Callable] = None) -> "Page[T]":
        items = [convert(item) for item in result.items] if convert else result.items
        return cls(
            items=items,
            total_pages=result.total_pages,
            current_page=result.current_page,
            total=result.total_items,
        )


class MessageResponse(BaseModel):
    message: str
