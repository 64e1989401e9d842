"""Paginated list results."""

import math
from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    """One page of a company-scoped listing."""

    items: list[T]
    page: int
    limit: int
    total: int

    @property
    def pages(self) -> int:
        """Number of pages for the current limit."""
        return math.ceil(self.total / self.limit) if self.limit else 0

    def to_json(self, key: str) -> dict:
        """Response payload: items under `key` plus a pagination block."""
        return {
            key: [item.model_dump(mode="json") for item in self.items],
            "pagination": {
                "page": self.page,
                "limit": self.limit,
                "total": self.total,
                "pages": self.pages,
            },
        }
