"""
Response envelope shared by every engine endpoint
"""
from math import ceil
from typing import Any, Dict, Generic, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ErrorInfo(BaseModel):
    message: str
    code: str


class PageMeta(BaseModel):
    page: int = Field(..., ge=1)
    page_size: int = Field(..., ge=1)
    total_items: int = Field(..., ge=0)
    total_pages: int = Field(..., ge=0)

    @classmethod
    def build(cls, page: int, page_size: int, total_items: int) -> "PageMeta":
        return cls(
            page=page,
            page_size=page_size,
            total_items=total_items,
            total_pages=ceil(total_items / page_size) if total_items else 0,
        )


class ApiResponse(BaseModel, Generic[T]):
    """{success, data?, error?, meta?}"""
    success: bool
    data: Optional[T] = None
    error: Optional[ErrorInfo] = None
    meta: Optional[PageMeta] = None

    @classmethod
    def ok(cls, data: Any = None, meta: Optional[PageMeta] = None) -> "ApiResponse":
        return cls(success=True, data=data, meta=meta)

    @classmethod
    def fail(cls, message: str, code: str) -> "ApiResponse":
        return cls(success=False, error=ErrorInfo(message=message, code=code))

    def to_dict(self) -> Dict[str, Any]:
        # Success always carries data (null when there is none); error and meta only when set
        absent = {name for name in ("error", "meta") if getattr(self, name) is None}
        if not self.success and self.data is None:
            absent.add("data")
        return self.model_dump(mode="json", exclude=absent)
