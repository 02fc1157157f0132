"""Shared BDD fixtures and step definitions for the marketplace."""

import pytest
from marketplace.cart.cart import Cart
from marketplace.errors import FulfillmentError
from marketplace.order.order import Order
from marketplace.reference.sync import RepriceSku
from protean import current_domain
from pytest_bdd import given, parsers, then


@pytest.fixture
def skus():
    """SKU ids by code."""
    return {}


@pytest.fixture
def placed():
    """Cart id and checkout result of the scenario's buyer."""
    return {}


@pytest.fixture
def error():
    return {}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a SKU "{code}" priced at {price:f} with {stock:d} units in stock'))
def sku_in_stock(seed, skus, code, price, stock):
    skus[code] = seed.sku(price=price, stock=stock, code=code)


@given(parsers.cfparse('the cart holds {quantity:d} units of "{code}"'))
def cart_holds(seed, skus, placed, code, quantity):
    placed["cart_id"] = seed.cart([(skus[code], quantity)], cart_id=placed.get("cart_id"))


@given(parsers.cfparse('"{code}" is repriced to {price:f}'))
def sku_repriced(skus, code, price):
    current_domain.process(RepriceSku(sku_id=skus[code], price=price), asynchronous=False)


@given(parsers.cfparse('a placed order for {quantity:d} units of "{code}"'))
def placed_order(seed, skus, placed, code, quantity):
    cart_id = seed.cart([(skus[code], quantity)])
    placed.update(seed.checkout(cart_id), cart_id=cart_id)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the request is rejected with "{code}"'))
def rejected_with(error, code):
    assert isinstance(error.get("exc"), FulfillmentError)
    assert error["exc"].code == code


@then(parsers.cfparse('"{code}" has {stock:d} units in stock'))
def units_in_stock(seed, skus, code, stock):
    assert seed.stock(skus[code]) == stock
    assert seed.balance(skus[code]) == stock


@then(parsers.cfparse('the order is "{status}"'))
def order_status(placed, status):
    order = current_domain.repository_for(Order).get(placed["order_id"])
    assert order.status == status


@then(parsers.cfparse("the order total is {total:f}"))
def order_total(placed, total):
    assert placed["total"] == pytest.approx(total)


@then("the cart is empty")
def cart_is_empty(placed):
    assert current_domain.repository_for(Cart).get(placed["cart_id"]).items == []


@then("no order was placed")
def no_order():
    assert current_domain.repository_for(Order)._dao.query.all().items == []
