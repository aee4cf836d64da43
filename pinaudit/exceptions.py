"""
Errors raised by pinaudit.

Every error derives from :class:`PinAuditError`. Besides its message, an
error carries a ``details`` mapping (file, line, package, HTTP status and
so on) that ``str()`` appends in parentheses, so one ``print_error(str(e))``
tells the user where things went wrong.

Range and version problems (:class:`MalformedRangeError`,
:class:`InvalidVersionError`) are only fatal under ``--strict-ranges``;
otherwise the closure builder turns them into diagnostics.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from pinaudit.constants import ACCESS_TOKEN_ENV

#: Longest response body kept in error details.
MAX_BODY_IN_DETAILS = 200


def _compact(**fields: Any) -> Dict[str, Any]:
    """Keyword arguments minus the ones that are ``None``, in order."""
    return {key: value for key, value in fields.items() if value is not None}


def _shorten(text: str, limit: int = MAX_BODY_IN_DETAILS) -> str:
    return text if len(text) <= limit else f"{text[:limit]}..."


class PinAuditError(Exception):
    """Base class of every pinaudit error.

    Args:
        message: What went wrong, for humans.
        details: Structured context; rendered after the message.
    """

    __slots__ = ("message", "details")

    def __init__(self, message: str, details: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = dict(details or {})

    def __str__(self) -> str:
        if self.details:
            context = ", ".join(f"{key}={value}" for key, value in self.details.items())
            return f"{self.message} ({context})"
        return self.message

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, details={self.details!r})"


class ParseError(PinAuditError):
    """A roots file, manifest or snapshot could not be read as expected."""

    __slots__ = ("line_number", "line_content", "file_path")

    def __init__(
        self,
        message: str,
        *,
        line_number: Optional[int] = None,
        line_content: Optional[str] = None,
        file_path: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            _compact(line=line_number, content=line_content, file=file_path),
        )
        self.line_number = line_number
        self.line_content = line_content
        self.file_path = file_path


class MalformedRangeError(ParseError):
    """A declared range is not one of the known interval notations.

    The accepted shapes are ``(lo, hi)``, ``(, hi)``, ``(, )``, ``[lo, )``,
    ``[lo, hi)`` and ``[lo, hi]``.
    """

    __slots__ = ("range_text", "reason")

    def __init__(self, range_text: str, reason: str) -> None:
        super().__init__(f"Unknown version range format: {reason}")
        self.details["range"] = range_text
        self.range_text = range_text
        self.reason = reason


class InvalidVersionError(ParseError):
    """A version string does not start with a dotted-numeric run."""

    __slots__ = ("version_text",)

    def __init__(self, version_text: str) -> None:
        super().__init__("Version has no numeric component")
        self.details["version"] = version_text
        self.version_text = version_text


class ConfigError(PinAuditError):
    """Configuration is missing, unreadable or contradicts itself.

    ``option`` names the setting at fault (``cluster``, ``token``,
    ``max_retries``...) when there is one.
    """

    __slots__ = ("config_path", "option")

    def __init__(
        self,
        message: str,
        *,
        config_path: Optional[str] = None,
        option: Optional[str] = None,
    ) -> None:
        super().__init__(message, _compact(path=config_path, option=option))
        self.config_path = config_path
        self.option = option


class NetworkError(PinAuditError):
    """An HTTP request failed for good (after any retries).

    Args:
        message: Error description.
        url: Requested URL.
        status_code: HTTP status of the final response, if there was one.
        response_body: Raw body of that response; shortened in ``details``.
    """

    __slots__ = ("url", "status_code", "response_body")

    def __init__(
        self,
        message: str,
        *,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
    ) -> None:
        body = _shorten(response_body) if response_body is not None else None
        super().__init__(
            message,
            _compact(url=url, status_code=status_code, response=body),
        )
        self.url = url
        self.status_code = status_code
        self.response_body = response_body


class QueryError(NetworkError):
    """A metadata query failed or returned something unusable.

    ``table``, ``package_name`` and ``package_version`` identify the query;
    the remaining keyword arguments are those of :class:`NetworkError`.
    """

    __slots__ = ("table", "package_name", "package_version")

    def __init__(
        self,
        message: str,
        *,
        table: Optional[str] = None,
        package_name: Optional[str] = None,
        package_version: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.details.update(_compact(table=table, package=package_name, version=package_version))
        self.table = table
        self.package_name = package_name
        self.package_version = package_version


class FileOperationError(PinAuditError):
    """Reading an input or writing a report failed."""

    __slots__ = ("file_path", "operation", "original_error")

    def __init__(
        self,
        message: str,
        *,
        file_path: Optional[str] = None,
        operation: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ) -> None:
        cause = str(original_error) if original_error is not None else None
        super().__init__(
            message,
            _compact(path=file_path, operation=operation, original_error=cause),
        )
        self.file_path = file_path
        self.operation = operation
        self.original_error = original_error


def error_hint(exc: PinAuditError) -> Optional[str]:
    """Suggest a next step for the errors users commonly run into."""
    if isinstance(exc, NetworkError) and exc.status_code in (401, 403):
        return f"The access token was rejected; refresh {ACCESS_TOKEN_ENV} or pass --token."
    if isinstance(exc, ConfigError) and exc.option == "cluster":
        return "Run with --snapshot FILE for an offline audit."
    if isinstance(exc, MalformedRangeError):
        return "Use --lenient-ranges to record malformed ranges and keep going."
    return None
