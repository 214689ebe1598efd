"""Standardized error handling patterns for contactcore."""

import functools
from typing import Any, Callable, Dict, List, Optional, Sequence, Type
from contextlib import contextmanager

from .logging_config import get_logger, log_error

logger = get_logger(__name__)


class ContactCoreError(Exception):
    """Base exception for all contactcore-specific errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.error_code = error_code
        self.context = context or {}


class MalformedCardError(ContactCoreError):
    """A card block that carries no identity (no name and no phone)."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="malformed_card", context=context)


class EncodingFallbackError(ContactCoreError):
    """Primary charset decode failed; the caller falls back to the legacy charset."""

    def __init__(
        self,
        message: str,
        charset: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, error_code="encoding_fallback", context=context)
        self.charset = charset


class InsufficientMembersError(ContactCoreError):
    """Merge requested with fewer than two resolvable contacts."""

    def __init__(
        self,
        message: str,
        requested_ids: Optional[Sequence[str]] = None,
        resolved_count: int = 0,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, error_code="insufficient_members", context=context)
        self.requested_ids: List[str] = list(requested_ids or [])
        self.resolved_count = resolved_count


class ConfigurationError(ContactCoreError):
    """Error from configuration validation and setup issues."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, error_code="configuration_error", context=context)
        self.config_key = config_key


class ContactNotFoundError(ContactCoreError):
    """A contact or source file id does not resolve to a live record."""

    def __init__(self, message: str, record_id: Optional[str] = None):
        super().__init__(message, error_code="not_found", context={"record_id": record_id})
        self.record_id = record_id


class ImportRejectedError(ContactCoreError):
    """An uploaded file or pasted text was refused before or after decoding."""

    def __init__(
        self,
        message: str,
        filename: Optional[str] = None,
        reasons: Optional[List[str]] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, error_code="import_rejected", context=context)
        self.filename = filename
        self.reasons = reasons or []


class ErrorHandler:
    """Centralized error handling with consistent logging and context propagation."""

    def __init__(
        self,
        context: Optional[Dict[str, Any]] = None,
        log_errors: bool = True,
        raise_on_critical: bool = True
    ):
        """Initialize error handler.

        Args:
            context: Base context to include with all errors
            log_errors: Whether to log errors when handled
            raise_on_critical: Whether to raise critical errors
        """
        self.context = context or {}
        self.log_errors = log_errors
        self.raise_on_critical = raise_on_critical

    def handle_error(
        self,
        error: Exception,
        critical: bool = False,
        additional_context: Optional[Dict[str, Any]] = None
    ) -> Exception:
        """Handle an error with consistent logging and context.

        Args:
            error: The exception to handle
            critical: Whether this is a critical error
            additional_context: Additional context for this error

        Returns:
            The error (possibly enhanced)

        Raises:
            Exception: If critical=True and raise_on_critical=True
        """
        if isinstance(error, ContactCoreError):
            error.context.update(self.context)
            if additional_context:
                error.context.update(additional_context)

        if self.log_errors:
            log_error(
                __name__,
                "error_handled",
                error,
                critical=critical,
                **self.context,
                **(additional_context or {})
            )

        if critical and self.raise_on_critical:
            raise error

        return error

    @contextmanager
    def with_context(self, **context_updates):
        """Temporarily add context for error handling in a block.

        Args:
            **context_updates: Additional context key-value pairs

        Yields:
            ErrorHandler with updated context
        """
        original_context = self.context.copy()
        self.context.update(context_updates)

        try:
            yield self
        finally:
            self.context = original_context


@contextmanager
def error_context(
    operation: str,
    convert_to: Type[ContactCoreError] = ContactCoreError,
    **context
):
    """Context manager to automatically enhance errors with context.

    Args:
        operation: Name of the operation being performed
        convert_to: Type to convert non-ContactCoreError exceptions to
        **context: Additional context key-value pairs

    Raises:
        ContactCoreError: Enhanced with context information
    """
    full_context = {
        "operation": operation,
        **context
    }

    try:
        yield
    except ContactCoreError as e:
        e.context.update(full_context)
        raise
    except Exception as e:
        converted = convert_to(
            f"Error during {operation}: {str(e)}",
            context={
                **full_context,
                "original_error": type(e).__name__
            }
        )
        raise converted from e


def handle_errors(
    log_errors: bool = True,
    reraise: bool = False,
    default_return: Any = None,
    context: Optional[Dict[str, Any]] = None,
    convert_to: Optional[Type[ContactCoreError]] = None
):
    """Decorator to handle errors in functions consistently.

    Args:
        log_errors: Whether to log caught errors
        reraise: Whether to reraise the exception after handling
        default_return: Value to return if error is caught and not reraised
        context: Additional context to include with errors
        convert_to: Convert non-ContactCoreError exceptions to this type

    Returns:
        Decorated function
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            handler = ErrorHandler(
                context=context,
                log_errors=log_errors,
                raise_on_critical=reraise
            )

            try:
                return func(*args, **kwargs)
            except ContactCoreError as e:
                handler.handle_error(e, critical=reraise)
                return default_return
            except Exception as e:
                if convert_to is None:
                    handler.handle_error(e, critical=reraise)
                    return default_return

                converted = convert_to(
                    f"Error in {func.__name__}: {str(e)}",
                    context={
                        **(context or {}),
                        "original_error": type(e).__name__,
                        "function": func.__name__
                    }
                )
                if reraise:
                    handler.handle_error(converted)
                    raise converted from e
                handler.handle_error(converted)
                return default_return

        return wrapper
    return decorator
