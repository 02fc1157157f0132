import os
from pathlib import Path

import pytest
from protean.integrations.pytest import DomainFixture


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    """Select the domain.toml overlay before the domain is imported."""
    os.environ["PROTEAN_ENV"] = session.config.option.env


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = str(Path(item.fspath))

        if "/domain/" in test_path:
            item.add_marker(pytest.mark.domain)
        elif "/application/" in test_path:
            item.add_marker(pytest.mark.application)
        elif "/bdd/" in test_path:
            item.add_marker(pytest.mark.bdd)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)


@pytest.fixture(scope="session")
def marketplace_bed():
    from marketplace.domain import marketplace

    bed = DomainFixture(marketplace)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(marketplace_bed):
    with marketplace_bed.domain_context():
        yield

        from protean import current_domain

        for _, provider in current_domain.providers.items():
            provider._data_reset()
        current_domain.event_store.store._data_reset()


@pytest.fixture(autouse=True)
def gateway():
    from marketplace.payment.gateway import reset_gateway, set_gateway
    from marketplace.payment.gateway.fake_adapter import FakeGateway

    fake = FakeGateway()
    set_gateway(fake)
    yield fake
    reset_gateway()


@pytest.fixture(autouse=True)
def notifier():
    from marketplace.notifications.notifier import InMemoryNotifier, reset_notifier, set_notifier

    recorder = InMemoryNotifier()
    set_notifier(recorder)
    yield recorder
    reset_notifier()


class Seed:
    """Builds reference data, stock, carts and orders through the domain's own commands."""

    def __init__(self, domain):
        self.domain = domain
        self._counter = 0

    def _next(self):
        self._counter += 1
        return self._counter

    def sku(self, price=10.0, stock=0, store_id="store-1", code=None, location="main", attributes=None):
        from marketplace.inventory.stocking import OpenStockLocation
        from marketplace.reference.sync import RegisterSku

        number = self._next()
        sku_id = self.domain.process(
            RegisterSku(
                product_id=f"prod-{number}",
                store_id=store_id,
                code=code or f"SKU-{number:03d}",
                title=f"Item {number}",
                price=price,
                attributes=attributes or {"size": "M"},
            ),
            asynchronous=False,
        )
        if stock:
            self.domain.process(
                OpenStockLocation(sku_id=sku_id, location=location, initial_stock=stock),
                asynchronous=False,
            )
        return sku_id

    def location(self, sku_id, location, stock):
        from marketplace.inventory.stocking import OpenStockLocation

        return self.domain.process(
            OpenStockLocation(sku_id=sku_id, location=location, initial_stock=stock),
            asynchronous=False,
        )

    def address(self, owner_id="buyer-1", city="Springfield"):
        from marketplace.reference.sync import RegisterAddress

        return self.domain.process(
            RegisterAddress(
                owner_id=owner_id,
                first_name="Ada",
                last_name="Buyer",
                street="1 Main St",
                city=city,
                state="IL",
                postal_code="62701",
                country="US",
            ),
            asynchronous=False,
        )

    def cart(self, lines, owner_id="buyer-1", cart_id=None):
        """Build a cart straight on the aggregate, skipping the add-time stock check.

        ``lines`` is a list of ``(sku_id, quantity)``; prices are snapshotted now.
        Pass ``cart_id`` to add the lines to an existing cart.
        """
        from marketplace.cart.cart import Cart
        from marketplace.reference.sku import Sku

        if cart_id:
            cart = self.domain.repository_for(Cart).get(cart_id)
        else:
            cart = Cart.create(owner_id=owner_id)
        for sku_id, quantity in lines:
            sku = self.domain.repository_for(Sku).get(sku_id)
            cart.add_item(sku.id, quantity, sku.price, sku.currency)
        self.domain.repository_for(Cart).add(cart)
        return str(cart.id)

    def checkout(self, cart_id, buyer_id="buyer-1", shipping_method="standard", payment_method="card"):
        from marketplace.checkout.checkout import checkout_cart

        address_id = self.address(owner_id=buyer_id)
        return checkout_cart(
            cart_id=cart_id,
            buyer_id=buyer_id,
            shipping_address_id=address_id,
            billing_address_id=address_id,
            payment_method=payment_method,
            shipping_method=shipping_method,
        )

    def order(self, lines=((10.0, 2, 5),), buyer_id="buyer-1", store_id="store-1", shipping_method="standard"):
        """Place an order; ``lines`` is ``(price, quantity, stock)`` per SKU.

        Returns the checkout result plus the SKU ids under ``sku_ids``.
        """
        sku_ids = [self.sku(price=price, stock=stock, store_id=store_id) for price, _, stock in lines]
        cart_id = self.cart(
            [(sku_id, quantity) for sku_id, (_, quantity, _) in zip(sku_ids, lines, strict=True)],
            owner_id=buyer_id,
        )
        result = self.checkout(cart_id, buyer_id=buyer_id, shipping_method=shipping_method)
        return {**result, "sku_ids": sku_ids, "cart_id": cart_id}

    def paid_order(self, **kwargs):
        from marketplace.payment.authorization import AuthorizePayment
        from marketplace.payment.capture import CapturePayment

        result = self.order(**kwargs)
        self.domain.process(AuthorizePayment(payment_id=result["payment_id"]), asynchronous=False)
        self.domain.process(CapturePayment(payment_id=result["payment_id"], actor="staff-1"), asynchronous=False)
        return result

    def stock(self, sku_id):
        from marketplace.inventory.ledger import InventoryLedger

        return InventoryLedger().total_stock(sku_id)

    def balance(self, sku_id):
        from marketplace.inventory.ledger import InventoryLedger

        return InventoryLedger().balance(sku_id)


@pytest.fixture
def seed():
    from protean import current_domain

    return Seed(current_domain)
