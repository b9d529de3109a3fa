"""Exception taxonomy shared by the client, content layer, and tool handlers.

Tool handlers catch ``AzdoError`` subclasses and turn them into error
envelopes; nothing in this hierarchy is allowed to escape the dispatch shell.
"""

from __future__ import annotations


class AzdoError(Exception):
    """Base class for all azdo-mcp errors."""

    code = "error"


class ConfigurationError(AzdoError):
    """Missing or invalid credentials/organization settings. Fatal at startup."""

    code = "configuration_error"


class UpstreamError(AzdoError):
    """An Azure DevOps REST call failed (network, HTTP status, bad payload)."""

    code = "upstream_error"

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(UpstreamError):
    code = "authentication_error"


class NotFoundError(UpstreamError):
    code = "not_found"


class ContentRetrievalError(AzdoError):
    """Whole-file retrieval failed; no partial content is returned."""

    code = "content_retrieval_error"


class OperationTimeoutError(AzdoError):
    """A deadline elapsed before the operation finished."""

    code = "timeout"


class OperationCancelledError(AzdoError):
    """The caller abandoned the request before expensive work began."""

    code = "cancelled"
