"""Commands through which the catalog and address book push their records in."""

from protean import handle
from protean.fields import Boolean, Dict, Float, Identifier, String
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.reference.address import Address
from marketplace.reference.sku import Sku
from marketplace.settings import CURRENCY


@marketplace.command(part_of="Sku")
class RegisterSku:
    sku_id = Identifier()
    product_id = Identifier(required=True)
    store_id = Identifier(required=True)
    code = String(required=True, max_length=64)
    title = String(max_length=255)
    price = Float(required=True, min_value=0.0)
    currency = String(max_length=3, default=CURRENCY)
    attributes = Dict()


@marketplace.command(part_of="Sku")
class RepriceSku:
    sku_id = Identifier(required=True)
    price = Float(required=True, min_value=0.0)


@marketplace.command(part_of="Sku")
class ChangeSkuAvailability:
    sku_id = Identifier(required=True)
    is_active = Boolean(required=True)


@marketplace.command(part_of="Address")
class RegisterAddress:
    address_id = Identifier()
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


@marketplace.command_handler(part_of=Sku)
class SkuCatalogHandler:
    @handle(RegisterSku)
    def register_sku(self, command):
        sku = Sku.register(
            id=command.sku_id,
            product_id=command.product_id,
            store_id=command.store_id,
            code=command.code,
            title=command.title,
            price=command.price,
            currency=command.currency,
            attributes=command.attributes,
        )
        current_domain.repository_for(Sku).add(sku)
        return str(sku.id)

    @handle(RepriceSku)
    def reprice_sku(self, command):
        repo = current_domain.repository_for(Sku)
        sku = repo.get(command.sku_id)
        sku.reprice(command.price)
        repo.add(sku)

    @handle(ChangeSkuAvailability)
    def change_availability(self, command):
        repo = current_domain.repository_for(Sku)
        sku = repo.get(command.sku_id)
        sku.is_active = command.is_active
        repo.add(sku)


@marketplace.command_handler(part_of=Address)
class AddressBookHandler:
    @handle(RegisterAddress)
    def register_address(self, command):
        fields = dict(
            owner_id=command.owner_id,
            first_name=command.first_name,
            last_name=command.last_name,
            street=command.street,
            street2=command.street2,
            city=command.city,
            state=command.state,
            postal_code=command.postal_code,
            country=command.country,
            phone=command.phone,
        )
        if command.address_id:
            fields["id"] = command.address_id
        address = Address(**fields)
        current_domain.repository_for(Address).add(address)
        return str(address.id)
