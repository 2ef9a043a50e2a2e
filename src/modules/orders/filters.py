import django_filters

from modules.orders.constants import OrderStatus, PaymentMethod
from modules.orders.models import Order


class OrderFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=OrderStatus.choices)
    payment_method = django_filters.ChoiceFilter(choices=PaymentMethod.choices)
    email = django_filters.CharFilter(field_name="customer_email", lookup_expr="iexact")
    start_date = django_filters.DateFilter(field_name="created_at", lookup_expr="date__gte")
    end_date = django_filters.DateFilter(field_name="created_at", lookup_expr="date__lte")
    min_total = django_filters.NumberFilter(field_name="total", lookup_expr="gte")
    max_total = django_filters.NumberFilter(field_name="total", lookup_expr="lte")

    class Meta:
        model = Order
        fields = [
            "status",
            "payment_method",
            "email",
            "start_date",
            "end_date",
            "min_total",
            "max_total",
        ]
