"""
Core — Pagination

Page-number paginators with a configurable page_size and a hard cap.

@file core/pagination.py
"""

from rest_framework.pagination import PageNumberPagination

from core.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE


class StandardPagination(PageNumberPagination):
    page_size = DEFAULT_PAGE_SIZE
    page_size_query_param = 'page_size'
    max_page_size = MAX_PAGE_SIZE


class LedgerPagination(StandardPagination):
    """Audit queries over the movement ledger return larger pages."""
    page_size = 100
