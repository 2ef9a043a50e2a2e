"""Unit tests for ProductService and its DTOs."""

from __future__ import annotations

from uuid import uuid4

import pytest
from pydantic import ValidationError

from modules.products.dtos import CreateProductDTO, UpdateProductDTO
from modules.products.exceptions import ProductNotFound
from modules.products.models import Product
from modules.products.repositories.django_repository import ProductDjangoRepository
from modules.products.services import ProductService

pytestmark = pytest.mark.unit


@pytest.fixture()
def service():
    return ProductService(repository=ProductDjangoRepository())


class TestProductDTOs:
    def test_create_requires_positive_price(self):
        with pytest.raises(ValidationError):
            CreateProductDTO(name="Lady Grey", category="te", price=0)

    def test_create_requires_name(self):
        with pytest.raises(ValidationError):
            CreateProductDTO(name="  ", category="te", price=159)

    def test_update_changes_only_supplied_fields(self):
        assert UpdateProductDTO(price=169, in_stock=False).changes() == {
            "price": 169,
            "in_stock": False,
        }

    def test_update_rejects_negative_price(self):
        with pytest.raises(ValidationError):
            UpdateProductDTO(price=-5)


class TestProductService:
    def test_create_product(self, service):
        product = service.create_product(
            CreateProductDTO(
                name="Lady Grey",
                category="te",
                price=159,
                weight="100g",
                origin="Kina",
                featured=True,
            )
        )

        stored = Product.objects.get(id=product.id)
        assert stored.name == "Lady Grey"
        assert stored.in_stock is True
        assert stored.featured is True

    def test_update_product(self, service, earl_grey):
        product = service.update_product(
            str(earl_grey.id), UpdateProductDTO(price=169, in_stock=False)
        )

        assert product.price == 169
        assert product.in_stock is False
        assert product.name == "Earl Grey Imperial"

    def test_update_missing_product(self, service):
        with pytest.raises(ProductNotFound):
            service.update_product(str(uuid4()), UpdateProductDTO(price=100))

    def test_update_deleted_product(self, service, earl_grey):
        earl_grey.delete()

        with pytest.raises(ProductNotFound):
            service.update_product(str(earl_grey.id), UpdateProductDTO(price=100))

    def test_delete_is_soft(self, service, earl_grey):
        service.delete_product(str(earl_grey.id))

        assert Product.objects.filter(id=earl_grey.id).exists()
        with pytest.raises(ProductNotFound):
            service.get_product(str(earl_grey.id))

    def test_delete_twice(self, service, earl_grey):
        service.delete_product(str(earl_grey.id))

        with pytest.raises(ProductNotFound):
            service.delete_product(str(earl_grey.id))

    def test_get_product_malformed_id(self, service):
        with pytest.raises(ProductNotFound):
            service.get_product("earl-grey")


class TestProductRepository:
    def test_get_many_skips_unknown_and_malformed(self, earl_grey):
        repo = ProductDjangoRepository()

        found = repo.get_many([str(earl_grey.id), str(uuid4()), "garbage"])

        assert list(found) == [str(earl_grey.id)]
