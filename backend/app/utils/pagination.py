"""Fixed-size page helpers shared by the list endpoints."""

import math

PAGE_SIZE = 10


def page_offset(page: int, size: int = PAGE_SIZE) -> int:
    return (max(page, 1) - 1) * size


def page_count(total: int, size: int = PAGE_SIZE) -> int:
    return math.ceil(total / size) if total else 0
