"""
Success response envelope and pagination shared by all API views.

Success bodies look like ``{"success": true, "message": ..., "data": ...}``;
paginated lists add a ``pagination`` block.
"""
import math
from rest_framework import status
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response


def success_response(data=None, message='Success', status_code=status.HTTP_200_OK):
    return Response(
        {
            'success': True,
            'message': message,
            'data': data,
        },
        status=status_code
    )


def created_response(data=None, message='Created successfully'):
    return success_response(data, message, status.HTTP_201_CREATED)


class StandardResultsSetPagination(PageNumberPagination):
    """Standard pagination for list endpoints (``?page=&limit=``)."""
    page_size = 10
    page_size_query_param = 'limit'
    max_page_size = 100

    message = 'Data retrieved successfully'

    def get_paginated_response(self, data):
        total = self.page.paginator.count
        limit = self.page.paginator.per_page
        return Response({
            'success': True,
            'message': self.message,
            'data': data,
            'pagination': {
                'page': self.page.number,
                'limit': limit,
                'total': total,
                'total_pages': math.ceil(total / limit) if limit else 0,
            },
        })
