"""Business constants for the fulfillment core.

Values that vary between deployments can be overridden from the environment.
"""

import os
from decimal import Decimal

CURRENCY = "USD"

TAX_RATE = Decimal(os.getenv("MARKETPLACE_TAX_RATE", "0.10"))

DEFAULT_SHIPPING_METHOD = "standard"
SHIPPING_METHODS = {
    "standard": {"cost": Decimal("5.99"), "estimated_delivery": "3-5 business days"},
    "express": {"cost": Decimal("12.99"), "estimated_delivery": "1-2 business days"},
    "pickup": {"cost": Decimal("0.00"), "estimated_delivery": "Ready for pickup in 1 hour"},
}

ORDER_NUMBER_PREFIX = "ORD"

# Whole-checkout attempts when the write loses a race (order number or version clash)
CHECKOUT_ATTEMPTS = 2

LOW_STOCK_THRESHOLD = int(os.getenv("MARKETPLACE_LOW_STOCK_THRESHOLD", "10"))

RETURN_WINDOW_DAYS = int(os.getenv("MARKETPLACE_RETURN_WINDOW_DAYS", "30"))

DEFAULT_LOCATION = "default"

SESSION_TTL_SECONDS = int(os.getenv("MARKETPLACE_SESSION_TTL_SECONDS", str(24 * 60 * 60)))
