import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ListingError(Exception):
    status_code = 500
    code = "INTERNAL"

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)
        self.message = message

    def body(self) -> dict:
        return {"error": {"code": self.code, "message": self.message}}


class ListingValidationError(ListingError):
    """Bad filter, limit or cursor. Raised before any query runs."""

    status_code = 400

    def __init__(self, code: str, message: str, field: str):
        super().__init__(message)
        self.code = code
        self.field = field

    def body(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "fieldErrors": {self.field: self.message},
            }
        }


class StoreError(ListingError):
    """A query failed. Callers only ever see the generic message."""


class ProviderNotFound(ListingError):
    status_code = 404
    code = "PROVIDER_NOT_FOUND"

    def __init__(self, provider_id: int):
        super().__init__(f"Provider {provider_id} not found")
        self.provider_id = provider_id


def invalid_cursor(detail: str) -> ListingValidationError:
    return ListingValidationError("INVALID_CURSOR", f"Invalid cursor format: {detail}", "cursor")


def install_handlers(app: FastAPI) -> None:
    @app.exception_handler(ListingError)
    async def _listing_error(request: Request, exc: ListingError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.__cause__ or exc)
        return JSONResponse(status_code=exc.status_code, content=exc.body())
