"""
Error handling decorators and utilities for API endpoints.

This module centralizes the translation of application exceptions into
HTTP responses so every endpoint reports failures the same way.
"""

from functools import wraps
from typing import Callable
from fastapi import HTTPException
import logging

from constants import HTTPStatus
from exceptions import (
    ApplicationError,
    MetadataFetchError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def _to_http_exception(operation_name: str, error: Exception) -> HTTPException:
    """Map an exception raised by an endpoint to an HTTPException"""
    if isinstance(error, ValidationError):
        logger.warning(f"{operation_name} - Validation error: {error.message}")
        return HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail={"message": error.message, "errors": error.invalid_fields}
        )
    if isinstance(error, MetadataFetchError):
        logger.error(f"{operation_name} - Metadata error: {error.details.get('reason', error.message)}")
        return HTTPException(status_code=HTTPStatus.INTERNAL_SERVER_ERROR, detail=error.message)
    if isinstance(error, ApplicationError):
        logger.error(f"{operation_name} - Application error: {error.message}", exc_info=True)
        return HTTPException(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            detail=f"{operation_name} failed: {error.message}"
        )

    logger.error(f"{operation_name} - Unexpected error: {error}", exc_info=True)
    return HTTPException(
        status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
        detail=f"{operation_name} failed. Please check server logs or contact support."
    )


def handle_api_errors(operation_name: str):
    """
    Decorator to handle common API errors consistently across async endpoints.

    Args:
        operation_name: Human-readable name of the operation (e.g., "Format lookup")

    Returns:
        Decorated function that handles errors uniformly

    Example:
        @router.post("/get-formats")
        @handle_api_errors("Format lookup")
        async def get_formats(...):
            return await query.fetch_formats(url)
    """
    def decorator(func: Callable):
        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except HTTPException:
                # Re-raise HTTPException as-is to preserve status code and detail
                raise
            except Exception as e:
                raise _to_http_exception(operation_name, e) from e

        return async_wrapper

    return decorator
