from rest_framework.pagination import PageNumberPagination


class StandardResultsSetPagination(PageNumberPagination):
    """Page-number pagination used by the back-office listings.

    Clients may ask for up to ``max_page_size`` rows with ``?page_size=``.
    """

    page_size = 20
    page_size_query_param = "page_size"
    max_page_size = 100
