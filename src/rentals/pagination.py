from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response


class EnvelopePagination(PageNumberPagination):
    """Page-number pagination wrapped in the API envelope."""
    page_size = 10                   # default items per page
    page_size_query_param = 'limit'  # allow ?limit=
    max_page_size = 100              # safety cap

    def get_paginated_response(self, data, **extra):
        payload = {
            "success": True,
            "data": data,
            "pagination": {
                "page": self.page.number,
                "limit": self.page.paginator.per_page,
                "total": self.page.paginator.count,
                "pages": self.page.paginator.num_pages,
            },
        }
        payload.update(extra)
        return Response(payload)

    def get_paginated_response_schema(self, schema):
        return {
            "type": "object",
            "required": ["success", "data", "pagination"],
            "properties": {
                "success": {"type": "boolean", "example": True},
                "data": schema,
                "pagination": {
                    "type": "object",
                    "properties": {
                        "page": {"type": "integer", "example": 1},
                        "limit": {"type": "integer", "example": 10},
                        "total": {"type": "integer", "example": 42},
                        "pages": {"type": "integer", "example": 5},
                    },
                },
            },
        }
