"""
Stock rules shared by the initialization and callback flows.

A product keeps either a flat ``stock`` count or a ``color_size_stock``
mapping of color -> size -> count. The matrix is consulted only when the
ordered line names both a color and a size.
"""

from __future__ import annotations

from typing import Dict, Optional

from app.models.product import Product


def uses_color_size_stock(product: Product, color: Optional[str], size: Optional[str]) -> bool:
    return bool(color and size and product.color_size_stock)


def available_quantity(product: Product, color: Optional[str] = None, size: Optional[str] = None) -> int:
    if uses_color_size_stock(product, color, size):
        return int(product.color_size_stock.get(color, {}).get(size, 0))
    return int(product.stock or 0)


def decrement_color_size_stock(
    matrix: Dict[str, Dict[str, int]],
    color: str,
    size: str,
    quantity: int,
) -> Dict[str, Dict[str, int]]:
    """
    Return a copy of ``matrix`` with the (color, size) cell reduced by
    ``quantity``, never below zero. Other cells are left untouched; an
    unknown color returns an unchanged copy.
    """
    updated = {c: dict(sizes) for c, sizes in matrix.items()}
    sizes = updated.get(color)
    if sizes is None:
        return updated
    sizes[size] = max(0, int(sizes.get(size, 0)) - quantity)
    return updated
