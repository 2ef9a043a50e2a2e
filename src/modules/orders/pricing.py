"""Cart pricing.

``OrderBuilder`` turns a ``PlaceOrderDTO`` into an ``OrderDraft`` using the
catalog prices at the moment of the call.  It never writes anything.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

import structlog
from django.conf import settings

from modules.orders.dtos import OrderDraft, OrderLineDTO
from modules.orders.exceptions import ProductNotFound, ProductUnavailable

if TYPE_CHECKING:
    from modules.orders.dtos import PlaceOrderDTO
    from modules.products.repositories.interfaces import IProductRepository

logger = structlog.get_logger(__name__)


def calculate_shipping(
    subtotal: int,
    threshold: Optional[int] = None,
    fee: Optional[int] = None,
) -> int:
    """Flat shipping fee, waived once the subtotal reaches the threshold."""
    if threshold is None:
        threshold = settings.SHOP["FREE_SHIPPING_THRESHOLD"]
    if fee is None:
        fee = settings.SHOP["SHIPPING_FEE"]
    return 0 if subtotal >= threshold else fee


class OrderBuilder:
    def __init__(
        self,
        product_repository: IProductRepository,
        free_shipping_threshold: Optional[int] = None,
        shipping_fee: Optional[int] = None,
    ) -> None:
        self._product_repo = product_repository
        self._threshold = free_shipping_threshold
        self._fee = shipping_fee

    def build(self, dto: PlaceOrderDTO) -> OrderDraft:
        """Price the cart.

        Raises:
            ProductNotFound: a product id is unknown or soft-deleted.
            ProductUnavailable: a product is out of stock.
        """
        products = self._product_repo.get_many([str(i.product_id) for i in dto.items])

        lines = []
        for item in dto.items:
            product = products.get(str(item.product_id))
            if product is None:
                logger.info("order.build_rejected", product_id=str(item.product_id))
                raise ProductNotFound(f"Product {item.product_id} not found.")
            if not product.is_orderable:
                logger.info("order.build_rejected", product_id=str(product.id))
                raise ProductUnavailable(str(product.id), product.name)
            lines.append(
                OrderLineDTO(
                    product_id=product.id,
                    name=product.name,
                    price=product.price,
                    quantity=item.quantity,
                    weight=product.weight,
                    origin=product.origin,
                )
            )

        subtotal = sum(line.subtotal for line in lines)
        shipping = calculate_shipping(subtotal, self._threshold, self._fee)
        return OrderDraft(
            customer=dto.customer,
            lines=lines,
            subtotal=subtotal,
            shipping=shipping,
            total=subtotal + shipping,
            notes=dto.notes or "",
        )
