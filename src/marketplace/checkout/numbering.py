"""Order numbers: ``ORD-YYYYMMDD-NNNNN``."""

import secrets
from datetime import UTC, date, datetime

from marketplace.settings import ORDER_NUMBER_PREFIX


def generate_order_number(today: date | None = None) -> str:
    today = today or datetime.now(UTC).date()
    return f"{ORDER_NUMBER_PREFIX}-{today:%Y%m%d}-{10000 + secrets.randbelow(90000)}"
