# shared/common/pagination.py
"""
List pagination.

Conflict lists are read by schedulers scrolling the newest first, so the
envelope carries the page position alongside DRF's count and links.
"""

from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response


class StandardPagination(PageNumberPagination):
    page_size_query_param = 'page_size'
    max_page_size = 100

    def get_paginated_response(self, data):
        paginator = self.page.paginator
        return Response({
            'count': paginator.count,
            'page': self.page.number,
            'pages': paginator.num_pages,
            'next': self.get_next_link(),
            'previous': self.get_previous_link(),
            'results': data,
        })

    def get_paginated_response_schema(self, schema):
        envelope = super().get_paginated_response_schema(schema)
        envelope['required'] = ['count', 'page', 'pages', 'results']
        envelope['properties']['page'] = {'type': 'integer', 'example': 1}
        envelope['properties']['pages'] = {'type': 'integer', 'example': 3}
        return envelope
