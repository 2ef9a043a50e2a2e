"""Category DRF serializers."""

from __future__ import annotations

from rest_framework import serializers

from modules.categories.models import Category


class CategorySerializer(serializers.ModelSerializer):
    class Meta:
        model = Category
        fields = [
            "id",
            "name",
            "slug",
            "icon",
            "sort_order",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields
