from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from ..domain import AppState, Product
from ..store import get_by_id, new_id, remove_by_id, replace_by_id
from .errors import ValidationError


@dataclass
class ProductInput:
    name: str
    purchase_price: Decimal
    sell_price_1: Decimal
    sell_price_2: Decimal
    stock: int = 0
    description: str = ""


def _price(value, label: str) -> Decimal:
    try:
        price = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation as e:
        raise ValidationError(f"{label} must be a number.") from e
    if price < 0:
        raise ValidationError(f"{label} cannot be negative.")
    return price


def _build(product_id: str, data: ProductInput) -> Product:
    if not data.name.strip():
        raise ValidationError("Product name cannot be empty.")
    if int(data.stock) < 0:
        raise ValidationError("Stock cannot be negative.")
    return Product(
        id=product_id,
        name=data.name.strip(),
        description=(data.description or "").strip(),
        purchase_price=_price(data.purchase_price, "Purchase price"),
        sell_price_1=_price(data.sell_price_1, "Sell price 1"),
        sell_price_2=_price(data.sell_price_2, "Sell price 2"),
        stock=int(data.stock),
    )


def add_product(state: AppState, data: ProductInput) -> tuple[AppState, Product]:
    product = _build(new_id("prod"), data)
    return dataclasses.replace(state, products=state.products + (product,)), product


def update_product(state: AppState, product_id: str, data: ProductInput) -> tuple[AppState, Product]:
    get_by_id(state.products, product_id, "product")
    product = _build(product_id, data)
    return dataclasses.replace(state, products=replace_by_id(state.products, product)), product


def delete_product(state: AppState, product_id: str) -> AppState:
    get_by_id(state.products, product_id, "product")
    return dataclasses.replace(state, products=remove_by_id(state.products, product_id))
