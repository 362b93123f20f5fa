"""
Custom exceptions for the sharepointclient package.

This module provides the SharePoint-specific exception hierarchy and the
functions that normalize transport failures, unparseable bodies and error
envelopes returned by the SharePoint REST API into a single ``RequestError``.
"""

import functools
import re
import ssl
from typing import Any, Callable, Dict, Optional, TypeVar, cast

import httpx

T = TypeVar("T")

MAX_ERROR_DETAIL_LENGTH = 500

CURL_ERROR_PATTERN = re.compile(r"cURL error (?P<code>\d+): (?P<text>.*)", re.DOTALL)

CURL_UNSUPPORTED_PROTOCOL = 1
CURL_SSL_CONNECT_ERROR = 35

_CURL_HINTS: Dict[int, str] = {
    CURL_UNSUPPORTED_PROTOCOL: (
        "The URL protocol is not supported, make sure the site URL starts with http:// or https://"
    ),
    CURL_SSL_CONNECT_ERROR: (
        "The TLS/SSL handshake failed, check the server certificate and the TLS versions"
        " supported by the client and the server"
    ),
}

_CURL_GENERIC_HINT = (
    "See https://curl.se/libcurl/c/libcurl-errors.html for troubleshooting this error code"
)


class SharePointError(Exception):
    """Base exception for all SharePoint-related errors."""

    def __init__(
        self, message: str, code: Optional[int] = None, cause: Optional[BaseException] = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.cause = cause

    def __str__(self) -> str:
        return self.message

    @property
    def previous_message(self) -> Optional[str]:
        """The message of the underlying cause, if there is one."""
        return None if self.cause is None else str(self.cause)


class SharePointClientClosed(SharePointError):
    """
    Raised when an operation is attempted on a closed SPSite.
    """

    def __init__(self, message: str = "The SharePoint site session is closed") -> None:
        super().__init__(message)


class ConfigurationError(SharePointError):
    """
    Raised when the site or app configuration is missing a value or has an invalid one.
    """


class HydrationError(SharePointError):
    """
    Raised when a required attribute path cannot be resolved against a response,
    or when an object cannot be hydrated from the given source.
    """

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        super().__init__(message)
        self.path = path


class InvalidExtraAttributeError(SharePointError):
    """
    Raised when an extra attribute is requested that was never populated.
    """

    def __init__(self, name: str) -> None:
        super().__init__(f"Invalid property: {name}")
        self.name = name


class ItemNotFoundError(SharePointError, KeyError):
    """
    Raised when a SharePoint Item is not present in a container.
    """

    def __init__(self, key: Any) -> None:
        super().__init__(f"Invalid SharePoint Item: {key}")
        self.key = key


# Credential errors
class CredentialError(SharePointError):
    """
    Base class for access token and form digest errors.
    """

    def __init__(self, message: str, kind: Any) -> None:
        super().__init__(message)
        self.kind = kind


class MissingCredentialError(CredentialError):
    """
    Raised when a credential is requested before it was created or set.
    """

    def __init__(self, kind: Any) -> None:
        super().__init__(f"Invalid SharePoint {_describe(kind)}", kind)


class ExpiredCredentialError(CredentialError):
    """
    Raised when a credential is requested or supplied after its expiry instant.
    """

    def __init__(self, kind: Any) -> None:
        super().__init__(f"Expired SharePoint {_describe(kind)}", kind)


def _describe(kind: Any) -> str:
    return getattr(kind, "label", str(kind))


# Request errors
class RequestError(SharePointError):
    """
    Raised for transport failures, unparseable bodies and error envelopes
    returned by the SharePoint REST API.

    The original failure is always kept in ``cause`` (and as ``__cause__``
    when raised through ``sharepoint_errors``).
    """

    def __init__(
        self,
        message: str,
        code: Optional[int] = None,
        cause: Optional[BaseException] = None,
        *,
        response: Optional[httpx.Response] = None,
    ) -> None:
        super().__init__(message, code, cause)
        self.response = response


def _get_error_detail(response: Optional[httpx.Response]) -> str:
    """Extract the raw body from a response, safely handling any exceptions."""
    if response is None:
        return "No response available"
    try:
        error_text = response.text or "No error details in response"
        if len(error_text) > MAX_ERROR_DETAIL_LENGTH:
            return error_text[:MAX_ERROR_DETAIL_LENGTH] + "..."
        return error_text
    except Exception:
        return "Unable to read error details from response"


def extract_error_message(payload: Any) -> Optional[str]:
    """Pick the most specific error message out of a decoded response body.

    Precedence:
        1. ``error.message.value`` (also under ``odata.error``)
        2. ``error`` when it is a plain string
        3. ``error_description`` (token endpoint style)

    Args:
        payload: The decoded JSON body.

    Returns:
        str | None: The message, or None when the body carries no error envelope.
    """
    if not isinstance(payload, dict):
        return None

    for key in ("error", "odata.error"):
        envelope = payload.get(key)
        if isinstance(envelope, dict):
            message = envelope.get("message")
            if isinstance(message, dict) and message.get("value") is not None:
                return str(message["value"])

    if isinstance(payload.get("error"), str):
        return payload["error"]

    if payload.get("error_description") is not None:
        return str(payload["error_description"])

    return None


def _has_error_envelope(payload: Any) -> bool:
    return isinstance(payload, dict) and ("error" in payload or "odata.error" in payload)


def error_from_response(
    response: httpx.Response, payload: Any = None
) -> Optional[RequestError]:
    """Classify a completed HTTP exchange.

    Args:
        response: The response received from the transport.
        payload: The decoded body, if it could be decoded.

    Returns:
        RequestError | None: The normalized error, or None for a successful exchange.
    """
    message = extract_error_message(payload)
    if message is not None:
        return RequestError(message, response.status_code, response=response)
    if response.is_error or _has_error_envelope(payload):
        return RequestError(
            _get_error_detail(response), response.status_code, response=response
        )
    return None


def error_from_parse_failure(
    error: BaseException, response: Optional[httpx.Response] = None
) -> RequestError:
    """Build the error raised when a successful response body is not valid JSON."""
    return RequestError("The JSON data could not be parsed", None, error, response=response)


def curl_hint(code: int) -> str:
    """Return the troubleshooting hint for a cURL error code."""
    return _CURL_HINTS.get(code, _CURL_GENERIC_HINT)


def _transport_error_code(error: BaseException) -> Optional[int]:
    if isinstance(error, httpx.UnsupportedProtocol):
        return CURL_UNSUPPORTED_PROTOCOL
    if isinstance(error, httpx.ConnectError):
        context = error.__cause__ or error.__context__
        if isinstance(context, ssl.SSLError) or "SSL" in str(error):
            return CURL_SSL_CONNECT_ERROR
    return None


def error_from_transport_failure(error: BaseException) -> RequestError:
    """Build a RequestError from a low-level transport failure.

    Messages shaped like ``cURL error <code>: <text>`` keep their code and get a
    hint appended. ``httpx.UnsupportedProtocol`` and TLS failures are given the
    matching cURL codes. Anything else keeps its original message.
    """
    detail = str(error) or type(error).__name__
    match = CURL_ERROR_PATTERN.search(detail)
    if match:
        code: Optional[int] = int(match.group("code"))
    else:
        code = _transport_error_code(error)

    message = f"Unable to make an HTTP request: {detail}"
    if code is not None:
        message = f"{message.rstrip('.')}. {curl_hint(code)}"
    return RequestError(message, code, error)


def sharepoint_errors(func: Callable[..., T]) -> Callable[..., T]:
    """
    Decorator that converts httpx transport exceptions to RequestError.

    SharePoint errors raised by the wrapped call pass through untouched.

    Usage:
        >>> @sharepoint_errors
        ... def get_web(self):
        ...     return self.httpx_client.get("_api/web")
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except httpx.RequestError as e:
            raise error_from_transport_failure(e) from e

    return cast(Callable[..., T], wrapper)
