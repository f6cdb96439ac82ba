"""Pagination for the staff estimate and notification lists."""

from rest_framework.pagination import PageNumberPagination


class StandardResultsSetPagination(PageNumberPagination):
    """Page number pagination; the dashboard may ask for larger pages."""

    page_size = 25
    page_size_query_param = "page_size"
    max_page_size = 100
