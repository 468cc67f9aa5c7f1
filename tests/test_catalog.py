from __future__ import annotations

from decimal import Decimal

import pytest

from repairdesk.services.catalog_service import ProductInput, add_product, delete_product, update_product
from repairdesk.services.errors import NotFoundError, ValidationError


def _filter(**overrides):
    data = dict(name="Filtro de agua", purchase_price="150", sell_price_1="300", sell_price_2="260", stock=10)
    data.update(overrides)
    return ProductInput(**data)


def test_add_product(state):
    state, product = add_product(state, _filter())
    assert product.id.startswith("prod-")
    assert state.products == (product,)
    assert (product.purchase_price, product.sell_price_1, product.sell_price_2) == (
        Decimal("150"),
        Decimal("300"),
        Decimal("260"),
    )


def test_update_and_delete_product(state):
    state, product = add_product(state, _filter())
    state, updated = update_product(state, product.id, _filter(sell_price_1="320", stock=8))
    assert updated.id == product.id
    assert state.products[0].sell_price_1 == Decimal("320")
    assert state.products[0].stock == 8

    state = delete_product(state, product.id)
    assert state.products == ()
    with pytest.raises(NotFoundError):
        delete_product(state, product.id)
    with pytest.raises(NotFoundError):
        update_product(state, "prod-missing", _filter())


@pytest.mark.parametrize(
    "overrides",
    [
        {"name": "  "},
        {"stock": -1},
        {"sell_price_1": "-5"},
        {"purchase_price": "barato"},
    ],
)
def test_invalid_products_are_rejected(state, overrides):
    with pytest.raises(ValidationError):
        add_product(state, _filter(**overrides))
