# sakubun/core/exceptions.py
from typing import Any, Dict, Optional

ERROR_SENTINEL = "Error:"
NO_RESPONSE_SENTINEL = "No valid response was received from the API."
FAILURE_SENTINELS = (ERROR_SENTINEL, NO_RESPONSE_SENTINEL)


def is_failure_text(text: Optional[str]) -> bool:
    """True when a generated string is really an upstream failure in disguise."""
    return bool(text) and text.lstrip().startswith(FAILURE_SENTINELS)


class FeedbackException(Exception):
    """Base exception for feedback errors"""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationMissingException(FeedbackException):
    """No credential for the generation service"""
    pass


class InputMissingException(FeedbackException):
    """Submission text or question missing"""
    pass


class UpstreamException(FeedbackException):
    """Failure reported by (or while reaching) the generation service.

    Messages carry the failure sentinel so they read as upstream errors when
    they end up in a response envelope.
    """
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        if not message.startswith(ERROR_SENTINEL):
            message = f"{ERROR_SENTINEL} {message}"
        super().__init__(message, details)


class UpstreamTransientException(UpstreamException):
    """Transport error or overloaded service; retried"""
    pass


class UpstreamBlockedException(UpstreamException):
    """Safety block or empty candidate; retried, then surfaced"""
    pass


class UpstreamPermanentException(UpstreamException):
    """Rate limit, auth, unknown model or server error; not retried for the same model"""
    pass


class MalformedUpstreamPayloadException(FeedbackException):
    """Reply did not contain the structured object that was asked for"""
    pass


class EmptyResponseException(MalformedUpstreamPayloadException):
    pass


class UpstreamErrorException(MalformedUpstreamPayloadException):
    """Reply text starts with a failure sentinel"""
    pass


class MalformedShapeException(MalformedUpstreamPayloadException):
    pass


class ValidationFailedException(FeedbackException):
    """Improvement items are not well-formed"""
    pass
