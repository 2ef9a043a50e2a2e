"""Order API views.

Exposes the ``OrderService`` via HTTP using DRF ViewSets.
Domain exceptions are caught and translated into appropriate
HTTP status codes; the view never swallows generic exceptions.

Placing an order and reading one by id are public (the order id is the
customer's receipt); listing and status overrides are admin only.  A stale
token on a public action is ignored rather than rejected.
"""

from __future__ import annotations

from django_filters.rest_framework import DjangoFilterBackend
from pydantic import ValidationError as PydanticValidationError
from rest_framework import status
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.permissions import AllowAny, IsAdminUser
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import BaseThrottle
from rest_framework.viewsets import GenericViewSet

from modules.accounts.authentication import OptionalAdminTokenAuthentication
from modules.core.pagination import StandardResultsSetPagination
from modules.orders.exceptions import (
    InvalidOrderStatus,
    OrderNotFound,
    ProductNotFound,
    ProductUnavailable,
)
from modules.orders.filters import OrderFilter
from modules.orders.models import Order
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.serializers import (
    OrderListSerializer,
    OrderSerializer,
    PlaceOrderSerializer,
    PublicOrderSerializer,
    StatusOverrideSerializer,
)
from modules.orders.services import OrderService
from modules.products.repositories.django_repository import ProductDjangoRepository

NOT_FOUND = {"detail": "Order not found."}
PUBLIC_ACTIONS = {"create", "retrieve"}


def build_order_service(payment_gateway=None) -> OrderService:
    return OrderService(
        order_repository=OrderDjangoRepository(),
        product_repository=ProductDjangoRepository(),
        payment_gateway=payment_gateway,
    )


def cart_error_response(exc: Exception) -> Response:
    """Map order-building failures to HTTP."""
    if isinstance(exc, ProductNotFound):
        return Response({"detail": str(exc)}, status=status.HTTP_404_NOT_FOUND)
    return Response({"detail": str(exc)}, status=status.HTTP_409_CONFLICT)


class OrderViewSet(GenericViewSet):
    """ViewSet for Order operations.

    Does **not** extend ``ModelViewSet``; all writes go through the
    service/repository layer.
    """

    queryset = Order.objects.all()
    filterset_class = OrderFilter
    search_fields = ["customer_name", "customer_email", "stripe_session_id"]
    ordering_fields = ["created_at", "total", "status"]
    ordering = ["-created_at"]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]
    pagination_class = StandardResultsSetPagination
    serializer_class = OrderSerializer

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = build_order_service()

    def get_authenticators(self):
        # Called before ``self.action`` is set on a live request.
        action = getattr(self, "action", None)
        request = getattr(self, "request", None)
        if action is None and request is not None:
            action = getattr(self, "action_map", {}).get(request.method.lower())
        if action in PUBLIC_ACTIONS:
            return [OptionalAdminTokenAuthentication()]
        return super().get_authenticators()

    def get_permissions(self):
        if self.action in PUBLIC_ACTIONS:
            return [AllowAny()]
        return [IsAdminUser()]

    def get_throttles(self) -> list[BaseThrottle]:
        self.throttle_scope = "checkout" if self.action == "create" else None
        return super().get_throttles()

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(self, request: Request) -> Response:
        """POST /api/v1/orders/

        Manual order: stored as ``pending`` until an admin confirms it.
        """
        serializer = PlaceOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            dto = serializer.to_dto()
        except PydanticValidationError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)

        try:
            order = self._service.place_manual_order(dto)
        except (ProductNotFound, ProductUnavailable) as exc:
            return cart_error_response(exc)

        return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)

    # ------------------------------------------------------------------
    # List / Retrieve
    # ------------------------------------------------------------------

    def list(self, request: Request) -> Response:
        """GET /api/v1/orders/

        Filtering is handled by ``OrderFilter``, ordering by
        ``OrderingFilter``.  Results are paginated.
        """
        queryset = self.filter_queryset(self.get_queryset())
        page = self.paginate_queryset(queryset)
        serializer = OrderListSerializer(page, many=True)
        return self.get_paginated_response(serializer.data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/

        Admins get the full record; everyone else the receipt view.
        """
        try:
            order = self._service.get_order(pk or "")
        except OrderNotFound:
            return Response(NOT_FOUND, status=status.HTTP_404_NOT_FOUND)

        if request.user and request.user.is_staff:
            return Response(OrderSerializer(order).data)
        return Response(PublicOrderSerializer(order).data)

    # ------------------------------------------------------------------
    # Status override
    # ------------------------------------------------------------------

    def partial_update(self, request: Request, pk: str | None = None) -> Response:
        """PATCH /api/v1/orders/{pk}/"""
        serializer = StatusOverrideSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            order = self._service.override_status(
                order_id=pk or "",
                new_status=serializer.validated_data["status"],
                notes=serializer.validated_data["notes"],
            )
        except OrderNotFound:
            return Response(NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        except InvalidOrderStatus as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)

        return Response(OrderSerializer(order).data)

    def update(self, request: Request, pk: str | None = None) -> Response:
        """PUT /api/v1/orders/{pk}/ behaves like PATCH: only status is writable."""
        return self.partial_update(request, pk)
