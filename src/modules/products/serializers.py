"""Product DRF serializers (output only; input goes through DTOs)."""

from __future__ import annotations

from rest_framework import serializers

from modules.products.models import Product


class ProductSerializer(serializers.ModelSerializer):
    class Meta:
        model = Product
        fields = [
            "id",
            "name",
            "category",
            "price",
            "description",
            "image",
            "weight",
            "origin",
            "in_stock",
            "featured",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields
