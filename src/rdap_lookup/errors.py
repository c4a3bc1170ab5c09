"""
Error types raised by rdap-lookup.

Every failure surfaces as a subclass of RDAPLookupError so callers can
catch the whole family with a single except clause.
"""


class RDAPLookupError(Exception):
    """Base class for all rdap-lookup errors."""


class ValidationError(RDAPLookupError):
    """Malformed identifier or query. No network call was made."""


class NetworkError(RDAPLookupError):
    """Transport failure: DNS, connect, TLS handshake, timeout or body read."""


class ParseError(RDAPLookupError):
    """Malformed JSON or an unexpected document shape."""


class NotFoundError(RDAPLookupError):
    """No bootstrap registry entry matches the query."""


class SchemeError(RDAPLookupError):
    """Credentials would be sent over a non-HTTPS connection."""


class HTTPStatusError(RDAPLookupError):
    """An RDAP server answered with a status of 400 or above."""

    def __init__(
        self,
        message: str,
        status_code: int,
        url: str,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.url = url
        # Seconds from the Retry-After header; 429s are never retried here
        self.retry_after = retry_after


class StatusError(HTTPStatusError):
    """Error status whose body was not a decodable RDAP error object."""

    def __init__(
        self, status_code: int, url: str, retry_after: float | None = None
    ) -> None:
        super().__init__(
            f"{status_code} error during request to {url}",
            status_code,
            url,
            retry_after,
        )


class RDAPProtocolError(HTTPStatusError):
    """Error status carrying an RDAP error object (RFC 7483 Section 6)."""

    def __init__(
        self,
        error,
        status_code: int,
        url: str,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(str(error), status_code, url, retry_after)
        self.error = error


class TypeMismatchError(RDAPLookupError):
    """
    The response's objectClassName differs from the requested type.

    The decoded object is still available on `resource` so callers can
    inspect whatever fields the server did return.
    """

    def __init__(self, expected: str, actual: str | None, resource) -> None:
        super().__init__(
            f"unexpected objectClassName: {actual!r} (expected {expected!r})"
        )
        self.expected = expected
        self.actual = actual
        self.resource = resource
