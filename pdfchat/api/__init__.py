"""pdfchat API layer -- routes, schemas, auth and middleware."""

from pdfchat.api.auth import PrincipalDep, get_current_principal
from pdfchat.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
    error_response,
    register_exception_handlers,
)
from pdfchat.api.routes import root_router, router
from pdfchat.api.schemas import (
    ApiResponse,
    ChatExchangeData,
    ChatListData,
    DocumentAnswerData,
    DocumentQueryRequest,
    ErrorResponse,
    SendMessageRequest,
    StatusData,
    UserSyncData,
)

__all__ = [
    "ErrorHandlingMiddleware",
    "RequestLoggingMiddleware",
    "configure_cors",
    "error_response",
    "register_exception_handlers",
    "router",
    "root_router",
    "PrincipalDep",
    "get_current_principal",
    "ApiResponse",
    "ChatExchangeData",
    "ChatListData",
    "DocumentAnswerData",
    "DocumentQueryRequest",
    "ErrorResponse",
    "SendMessageRequest",
    "StatusData",
    "UserSyncData",
]
