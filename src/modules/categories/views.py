"""Category API views.

Reads are public (the storefront renders its navigation from them);
writes require an admin session.
"""

from __future__ import annotations

from pydantic import ValidationError as PydanticValidationError
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAdminUser
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.viewsets import ViewSet

from modules.categories.dtos import CreateCategoryDTO, UpdateCategoryDTO
from modules.categories.exceptions import CategoryAlreadyExists, CategoryNotFound
from modules.categories.repositories.django_repository import CategoryDjangoRepository
from modules.categories.serializers import CategorySerializer
from modules.categories.services import CategoryService

NOT_FOUND = {"detail": "Category not found."}


class CategoryViewSet(ViewSet):
    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = CategoryService(repository=CategoryDjangoRepository())

    def get_permissions(self):
        if self.action in {"list", "retrieve"}:
            return [AllowAny()]
        return [IsAdminUser()]

    def list(self, request: Request) -> Response:
        """GET /api/v1/categories/"""
        categories = self._service.list_categories()
        return Response(CategorySerializer(categories, many=True).data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/categories/{pk}/"""
        try:
            category = self._service.get_category(pk or "")
        except CategoryNotFound:
            return Response(NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        return Response(CategorySerializer(category).data)

    def create(self, request: Request) -> Response:
        """POST /api/v1/categories/"""
        data = request.data
        try:
            dto = CreateCategoryDTO(
                name=data.get("name", ""),
                slug=data.get("slug") or None,
                icon=data.get("icon") or "",
                sort_order=data.get("sort_order", 0),
            )
        except (PydanticValidationError, ValueError) as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)

        try:
            category = self._service.create_category(dto)
        except CategoryAlreadyExists as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_409_CONFLICT)

        return Response(
            CategorySerializer(category).data, status=status.HTTP_201_CREATED
        )

    def update(self, request: Request, pk: str | None = None) -> Response:
        """PUT/PATCH /api/v1/categories/{pk}/"""
        data = request.data
        try:
            dto = UpdateCategoryDTO(
                name=data.get("name"),
                slug=data.get("slug"),
                icon=data.get("icon"),
                sort_order=data.get("sort_order"),
            )
        except (PydanticValidationError, ValueError) as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)

        try:
            category = self._service.update_category(pk or "", dto)
        except CategoryNotFound:
            return Response(NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        except CategoryAlreadyExists as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_409_CONFLICT)

        return Response(CategorySerializer(category).data)

    def partial_update(self, request: Request, pk: str | None = None) -> Response:
        return self.update(request, pk)

    def destroy(self, request: Request, pk: str | None = None) -> Response:
        """DELETE /api/v1/categories/{pk}/"""
        try:
            self._service.delete_category(pk or "")
        except CategoryNotFound:
            return Response(NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        return Response(status=status.HTTP_204_NO_CONTENT)
