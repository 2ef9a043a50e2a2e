"""Order DRF serializers for API input/output.

The serializer operates at the Interface layer (API Views).
Business logic lives in the Service Layer, which receives
Pydantic DTOs from ``dtos.py``.
"""

from __future__ import annotations

from rest_framework import serializers

from modules.orders.constants import OrderStatus
from modules.orders.dtos import CartItemDTO, CustomerSnapshotDTO, PlaceOrderDTO
from modules.orders.models import Order, OrderStatusHistory

# ---------------------------------------------------------------------------
# Input Serializers
# ---------------------------------------------------------------------------


class CustomerSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    email = serializers.EmailField()
    phone = serializers.CharField(
        max_length=50, required=False, default="", allow_blank=True
    )
    address = serializers.CharField(max_length=255)
    postal_code = serializers.CharField(max_length=20)
    city = serializers.CharField(max_length=100)


class CartItemSerializer(serializers.Serializer):
    """A cart line.  Any client-side price is ignored."""

    product_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1)


class PlaceOrderSerializer(serializers.Serializer):
    """Validates the body of both manual orders and card checkout."""

    customer = CustomerSerializer()
    items = CartItemSerializer(many=True, allow_empty=False)
    notes = serializers.CharField(required=False, default="", allow_blank=True)

    def validate_items(self, items):
        product_ids = [item["product_id"] for item in items]
        if len(product_ids) != len(set(product_ids)):
            raise serializers.ValidationError(
                "Duplicate product IDs are not allowed in the same order."
            )
        return items

    def to_dto(self) -> PlaceOrderDTO:
        data = self.validated_data
        return PlaceOrderDTO(
            customer=CustomerSnapshotDTO(**data["customer"]),
            items=[CartItemDTO(**item) for item in data["items"]],
            notes=data.get("notes", ""),
        )


class StatusOverrideSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OrderStatus.choices)
    notes = serializers.CharField(required=False, default="", allow_blank=True)


# ---------------------------------------------------------------------------
# Output Serializers (Read)
# ---------------------------------------------------------------------------


class StatusHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderStatusHistory
        fields = ["id", "old_status", "new_status", "notes", "created_at"]
        read_only_fields = fields


class CustomerSnapshotSerializer(serializers.Serializer):
    """Groups the snapshot columns back into a ``customer`` object."""

    name = serializers.CharField(source="customer_name")
    email = serializers.CharField(source="customer_email")
    phone = serializers.CharField(source="customer_phone")
    address = serializers.CharField()
    postal_code = serializers.CharField()
    city = serializers.CharField()


class OrderSerializer(serializers.ModelSerializer):
    """Full admin view of an order."""

    customer = CustomerSnapshotSerializer(source="*", read_only=True)
    status_history = StatusHistorySerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "customer",
            "items",
            "subtotal",
            "shipping",
            "total",
            "notes",
            "status",
            "payment_method",
            "stripe_session_id",
            "stripe_payment_intent",
            "paid_at",
            "created_at",
            "updated_at",
            "status_history",
        ]
        read_only_fields = fields


class PublicOrderSerializer(serializers.ModelSerializer):
    """What an anonymous customer may see of an order."""

    class Meta:
        model = Order
        fields = ["id", "status", "total", "items", "created_at"]
        read_only_fields = fields


class OrderListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for the admin order list."""

    customer_name = serializers.CharField(read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "customer_name",
            "status",
            "payment_method",
            "total",
            "created_at",
            "paid_at",
        ]
        read_only_fields = fields
