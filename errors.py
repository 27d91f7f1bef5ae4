import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class StudentAPIError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(StudentAPIError):
    status_code = 400


class NotFound(StudentAPIError):
    status_code = 404

    def __init__(self, message: str = "Student not found"):
        super().__init__(message)


class StorageError(StudentAPIError):
    status_code = 500


def format_validation_errors(errors) -> str:
    """Collapse pydantic error dicts into one line, e.g.
    ``Student validation failed: firstName: Field required``."""
    parts = []
    for err in errors:
        loc = [str(p) for p in err.get("loc", ()) if p != "body"]
        field = ".".join(loc)
        parts.append(f"{field}: {err.get('msg')}" if field else err.get("msg", "Invalid value"))
    return "Student validation failed: " + ", ".join(parts)


async def student_error_handler(request: Request, exc: StudentAPIError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


async def request_validation_handler(request: Request, exc: RequestValidationError):
    return await student_error_handler(request, ValidationError(format_validation_errors(exc.errors())))


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StudentAPIError, student_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
