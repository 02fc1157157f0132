"""SKU mirror: the catalog's sellable units as the fulfillment core sees them.

The catalog owns these records; checkout only reads the live price, store and
attributes. Attributes are a versioned map of scalar values so an order can
snapshot them without knowing the catalog's schema.
"""

import json

from protean.exceptions import ValidationError
from protean.fields import Boolean, Float, Identifier, String, Text

from marketplace.domain import marketplace
from marketplace.settings import CURRENCY

ATTRIBUTES_SCHEMA_VERSION = 1


def encode_attributes(values: dict | None) -> str:
    values = values or {}
    for key, value in values.items():
        if not isinstance(key, str):
            raise ValidationError({"attributes": ["Attribute names must be strings"]})
        if value is not None and not isinstance(value, (str, int, float, bool)):
            raise ValidationError({"attributes": [f"Attribute '{key}' must be a scalar value"]})
    return json.dumps({"schema_version": ATTRIBUTES_SCHEMA_VERSION, "values": values}, sort_keys=True)


def decode_attributes(raw: str | None) -> dict:
    if not raw:
        return {}
    payload = json.loads(raw)
    if payload.get("schema_version") != ATTRIBUTES_SCHEMA_VERSION:
        raise ValidationError({"attributes": [f"Unsupported attribute schema {payload.get('schema_version')}"]})
    return payload.get("values", {})


@marketplace.aggregate
class Sku:
    product_id = Identifier(required=True)
    store_id = Identifier(required=True)
    code = String(required=True, max_length=64)
    title = String(max_length=255)
    price = Float(required=True, min_value=0.0)
    currency = String(max_length=3, default=CURRENCY)
    attributes = Text()
    is_active = Boolean(default=True)

    @classmethod
    def register(cls, product_id, store_id, code, price, title=None, currency=CURRENCY, attributes=None, id=None):
        fields = dict(
            product_id=product_id,
            store_id=store_id,
            code=code,
            title=title or code,
            price=price,
            currency=currency,
            attributes=encode_attributes(attributes),
        )
        if id is not None:
            fields["id"] = id
        return cls(**fields)

    @property
    def attribute_values(self) -> dict:
        return decode_attributes(self.attributes)

    def reprice(self, price):
        if price is None or price < 0:
            raise ValidationError({"price": ["Price must be zero or more"]})
        self.price = price
