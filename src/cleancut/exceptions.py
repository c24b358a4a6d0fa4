"""Custom exceptions for cleancut with context support."""

import uuid
from typing import Any


def generate_correlation_id() -> str:
    """
    Generate an 8-character UUID-based correlation ID.

    Returns:
        8-character correlation ID string.
    """
    return str(uuid.uuid4())[:8]


class CleancutError(Exception):
    """Base exception for cleancut with context and correlation ID support."""

    def __init__(
        self,
        message: str,
        correlation_id: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialise exception with message, correlation ID, and context.

        Args:
            message: Error message.
            correlation_id: Optional correlation ID. If None, generates a new one.
            context: Optional context dictionary for debugging.
        """
        self.message = message
        self.correlation_id = correlation_id or generate_correlation_id()
        self.context = context or {}
        super().__init__(f"{message} [correlation_id={self.correlation_id}]")


class ValidationError(CleancutError):
    """Raised when input validation fails."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        value: Any = None,
        correlation_id: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialise validation error with field and value context.

        Args:
            message: Error message.
            field: Optional field name that failed validation.
            value: Optional value that failed validation.
            correlation_id: Optional correlation ID. If None, generates a new one.
            context: Optional context dictionary for debugging.
        """
        if context is None:
            context = {}
        if field is not None:
            context["field"] = field
        if value is not None:
            context["value"] = str(value)
        super().__init__(message, correlation_id=correlation_id, context=context)


class ConfigurationError(CleancutError):
    """Raised when pipeline or rule configuration is invalid."""

    def __init__(
        self,
        message: str,
        setting: str | None = None,
        correlation_id: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialise configuration error with setting context.

        Args:
            message: Error message.
            setting: Optional name of the offending setting.
            correlation_id: Optional correlation ID. If None, generates a new one.
            context: Optional context dictionary for debugging.
        """
        if context is None:
            context = {}
        if setting is not None:
            context["setting"] = setting
        super().__init__(message, correlation_id=correlation_id, context=context)


class RuleEvaluationError(CleancutError):
    """Raised when a filter rule's selector cannot be evaluated."""

    def __init__(
        self,
        message: str,
        selector: str | None = None,
        correlation_id: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        if context is None:
            context = {}
        if selector is not None:
            context["selector"] = selector
        super().__init__(message, correlation_id=correlation_id, context=context)


class ExtractionTimeoutError(CleancutError):
    """Raised inside the pipeline when the time budget is exhausted at a stage boundary."""

    def __init__(
        self,
        message: str,
        stage: str | None = None,
        elapsed_ms: float | None = None,
        correlation_id: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        if context is None:
            context = {}
        if stage is not None:
            context["stage"] = stage
        if elapsed_ms is not None:
            context["elapsed_ms"] = round(elapsed_ms, 2)
        super().__init__(message, correlation_id=correlation_id, context=context)


class ExtractorError(CleancutError):
    """Raised when an external article extractor fails."""

    def __init__(
        self,
        message: str,
        extractor: str | None = None,
        correlation_id: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialise extractor error with extractor context.

        Args:
            message: Error message.
            extractor: Optional extractor name that caused the error (e.g., "readability").
            correlation_id: Optional correlation ID. If None, generates a new one.
            context: Optional context dictionary for debugging.
        """
        if context is None:
            context = {}
        if extractor is not None:
            context["extractor"] = extractor
        super().__init__(message, correlation_id=correlation_id, context=context)
