from rest_framework.pagination import PageNumberPagination


class StandardResultsSetPagination(PageNumberPagination):
    """Shared pagination for ledger list endpoints.

    Clients pick a page size with `?page_size=`; values above `max_page_size`
    are capped so a party statement cannot pull the whole ledger in one call.
    """

    page_size_query_param = "page_size"
    max_page_size = 500
