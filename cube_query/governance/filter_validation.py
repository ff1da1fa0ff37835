"""
Filter validation -- prunes filters Cube would reject before they are sent.

Checks performed:
  1. Every condition names a member
  2. Binary operators carry a non-empty values list (unary ``set`` /
     ``notSet`` need none)
  3. AND/OR groups keep only their valid children, and a group with no
     valid children is dropped entirely

Nothing here raises: an incomplete filter is omitted, never sent.
"""
from __future__ import annotations

from cube_query.query.operators import is_unary
from cube_query.query.spec import AndFilter, CubeFilter, FilterItem, OrFilter


def is_valid_cube_filter(item: CubeFilter) -> bool:
    """True when a flat condition can be sent to the Cube API as-is."""
    if not item.member:
        return False
    if is_unary(item.operator):
        return True
    return bool(item.values)


def validate_filter_item(item: FilterItem) -> FilterItem | None:
    """Validate a condition or logical group recursively.

    Returns the item with invalid descendants removed, or None if nothing
    valid remains.
    """
    if isinstance(item, CubeFilter):
        return item if is_valid_cube_filter(item) else None

    if isinstance(item, AndFilter):
        children = filter_valid_cube_filters(item.and_)
        return AndFilter(and_=children) if children else None

    if isinstance(item, OrFilter):
        children = filter_valid_cube_filters(item.or_)
        return OrFilter(or_=children) if children else None

    return None


def filter_valid_cube_filters(items: list[FilterItem]) -> list[FilterItem]:
    """Drop invalid filters from *items*, preserving the order of survivors."""
    validated = (validate_filter_item(item) for item in items)
    return [item for item in validated if item is not None]
