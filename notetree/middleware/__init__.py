from .exception_handler import notetree_exception_handler
from .request_context import RequestContextMiddleware

__all__ = ["notetree_exception_handler", "RequestContextMiddleware"]
