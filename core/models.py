"""
core/models.py -- Domain dataclasses shared across packages.

Pattern: Data class (pure data container, zero logic beyond derived values).
"""

from __future__ import annotations

from dataclasses import dataclass

MAX_PAGE_SIZE = 100


@dataclass
class Page:
    """One page of results plus the total row count of the unpaged query."""

    items: list
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        if self.limit <= 0:
            return 0
        return (self.total + self.limit - 1) // self.limit
