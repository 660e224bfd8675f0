import os
import sys
from decimal import Decimal
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent))

os.environ.setdefault("ORPHAN_SWEEP_MINUTES", "0")

from fakes import (  # noqa: E402
    FakePaymentBridge,
    InMemoryCartStore,
    InMemoryOrderStore,
    InMemoryWishlistStore,
    StaticIdentityProvider,
)
from storefront.config import settings as app_settings  # noqa: E402
from storefront.schemas.principal import Identity  # noqa: E402


@pytest.fixture
def cart_store():
    return InMemoryCartStore()


@pytest.fixture
def order_store():
    return InMemoryOrderStore()


@pytest.fixture
def wishlist_store():
    return InMemoryWishlistStore()


@pytest.fixture
def bridge():
    return FakePaymentBridge()


@pytest.fixture
def alice():
    return Identity(id="alice", email="alice@example.com", role="user")


@pytest.fixture
def bob():
    return Identity(id="bob", email="bob@example.com", role="user")


@pytest.fixture
def cfg():
    return app_settings.model_copy(update={
        "site_url": "https://shop.example/#",
        "currency": "usd",
        "allow_guest_checkout": True,
        "verify_payment_sessions": False,
        "payment_webhook_secret": "whsec_test",
        "free_shipping_threshold": Decimal("41700"),
        "shipping_fee": Decimal("1000"),
        "tax_rate": Decimal("0.18"),
    })


@pytest.fixture
def shoe():
    return {"product_id": "shoe-1", "name": "Runner", "price": Decimal("120.00"),
            "image": "shoe.jpg", "category": "shoes", "size": "42"}


@pytest.fixture
def watch():
    return {"product_id": "watch-1", "name": "Chrono", "price": Decimal("350.50"),
            "image": "watch.jpg", "category": "watches"}


@pytest.fixture
def provider(alice):
    return StaticIdentityProvider(alice)
