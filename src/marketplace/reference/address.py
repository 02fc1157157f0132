"""Address-book mirror used for shipping and billing snapshots."""

from protean.fields import Identifier, String

from marketplace.domain import marketplace


@marketplace.aggregate
class Address:
    owner_id = Identifier(required=True)
    first_name = String(required=True, max_length=100)
    last_name = String(required=True, max_length=100)
    street = String(required=True, max_length=255)
    street2 = String(max_length=255)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(required=True, max_length=2)
    phone = String(max_length=30)

    def snapshot(self) -> dict:
        return {
            "first_name": self.first_name,
            "last_name": self.last_name,
            "street": self.street,
            "street2": self.street2,
            "city": self.city,
            "state": self.state,
            "postal_code": self.postal_code,
            "country": self.country,
            "phone": self.phone,
        }
