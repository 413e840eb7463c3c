"""Centralized exception handlers for FastAPI."""
from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import ValidationError as SchemaValidationError

from domain.exceptions import ReservationError


async def reservation_error_handler(request: Request, exc: ReservationError) -> JSONResponse:
    """Render core errors as {"error": {code, message, details, retryable}}"""
    if exc.status_code >= 500:
        logger.error(f'{exc.code} on {request.method} {request.url.path}: {exc.message}')
    else:
        logger.info(f'{exc.code} on {request.method} {request.url.path}: {exc.message}')
    return JSONResponse(status_code=exc.status_code, content={'error': exc.to_dict()})


async def schema_validation_error_handler(request: Request, exc: SchemaValidationError) -> JSONResponse:
    """Query values that fail a value object's own checks (e.g. an inverted date range)"""
    logger.info(f'Invalid parameters on {request.method} {request.url.path}')
    details = jsonable_encoder(exc.errors(include_url=False, include_context=False))
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={'error': {
            'code': 'VALIDATION_ERROR',
            'message': 'Invalid request parameters',
            'details': details,
            'retryable': False,
        }},
    )


async def general_500_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f'Unhandled exception: {str(exc)}')
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={'error': {
            'code': 'INTERNAL_ERROR',
            'message': 'Internal server error',
            'details': None,
            'retryable': False,
        }},
    )


# Exception handler mapping
EXCEPTION_HANDLERS = {
    ReservationError: reservation_error_handler,
    SchemaValidationError: schema_validation_error_handler,
    Exception: general_500_exception_handler,  # Catch-all for unhandled exceptions
}


def register_exception_handlers(app):
    for exception_class, handler in EXCEPTION_HANDLERS.items():
        app.add_exception_handler(exception_class, handler)
