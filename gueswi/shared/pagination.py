"""Pagination helpers shared by list endpoints"""

import math

from sqlalchemy.orm import Query

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


def paginate(query: Query, page: int, page_size: int) -> tuple[list, int]:
    """Return (rows, total) for a 1-based page"""
    total = query.order_by(None).count()
    rows = query.offset((page - 1) * page_size).limit(page_size).all()
    return rows, total


def total_pages(total: int, page_size: int) -> int:
    return math.ceil(total / page_size) if page_size else 0
