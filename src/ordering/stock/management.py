"""Product stock administration: commands and handler."""

from protean import handle
from protean.fields import Boolean, Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.errors import DuplicateKey
from ordering.stock.product import Product


@ordering.command(part_of="Product")
class RegisterProduct:
    name = String(required=True, max_length=200)
    sku = String(required=True, max_length=50)
    price = Float(required=True, min_value=0.0)
    colour = String(required=True, max_length=50)
    size = String(required=True, max_length=2)
    total_stock = Integer(default=0, min_value=0)
    image = String(max_length=500)
    category = String(max_length=100)
    is_featured = Boolean(default=False)


@ordering.command(part_of="Product")
class AdjustStock:
    product_id = Identifier(required=True)
    total_stock = Integer(required=True, min_value=0)
    reason = String(max_length=500)
    adjusted_by = Identifier()


@ordering.command(part_of="Product")
class DeactivateProduct:
    product_id = Identifier(required=True)


@ordering.command_handler(part_of=Product)
class ManageProductStockHandler:
    @handle(RegisterProduct)
    def register_product(self, command):
        repo = current_domain.repository_for(Product)
        if repo._dao.query.filter(sku=command.sku).all().total:
            raise DuplicateKey("sku", command.sku)

        product = Product.register(
            name=command.name,
            sku=command.sku,
            price=command.price,
            colour=command.colour,
            size=command.size,
            total_stock=command.total_stock or 0,
            image=command.image,
            category=command.category,
            is_featured=command.is_featured or False,
        )
        repo.add(product)
        return str(product.id)

    @handle(AdjustStock)
    def adjust_stock(self, command):
        repo = current_domain.repository_for(Product)
        product = repo.get(command.product_id)
        product.adjust_stock(
            command.total_stock,
            reason=command.reason,
            adjusted_by=command.adjusted_by,
        )
        repo.add(product)

    @handle(DeactivateProduct)
    def deactivate_product(self, command):
        repo = current_domain.repository_for(Product)
        product = repo.get(command.product_id)
        product.deactivate()
        repo.add(product)
