"""Classification of provider failures into the operation error taxonomy.

Two sources feed the classifier: HTTP status codes for the OVH REST API,
and free-form error text for transports whose failures carry no structured
code. Anything unrecognised becomes ServiceInternalError so the host never
has to branch on provider-specific wording.
"""

import logging
import re

from ovh import exceptions as ovh_exceptions

from models import ErrorKind, TransportError

logger = logging.getLogger(__name__)

# Order matters: the first matching token wins.
MESSAGE_TOKENS: tuple[tuple[ErrorKind, tuple[str, ...]], ...] = (
    (ErrorKind.NOT_FOUND, ("not found", "notfound", "does not exist")),
    (ErrorKind.ALREADY_EXISTS, ("already exists", "conflict")),
    (
        ErrorKind.ACCESS_DENIED,
        ("unauthorized", "forbidden", "not granted"),
    ),
    (
        ErrorKind.THROTTLING,
        ("too many requests", "rate limit", "quota"),
    ),
    (ErrorKind.INVALID_REQUEST, ("bad request", "invalid")),
)

# python-ovh raises a dedicated exception per well-known status code
_OVH_EXCEPTION_KINDS: tuple[tuple[type[Exception], ErrorKind], ...] = (
    (ovh_exceptions.ResourceNotFoundError, ErrorKind.NOT_FOUND),
    (ovh_exceptions.BadParametersError, ErrorKind.INVALID_REQUEST),
    (ovh_exceptions.ResourceConflictError, ErrorKind.ALREADY_EXISTS),
    (ovh_exceptions.NotGrantedCall, ErrorKind.ACCESS_DENIED),
    (ovh_exceptions.NotCredential, ErrorKind.ACCESS_DENIED),
    (ovh_exceptions.InvalidCredential, ErrorKind.ACCESS_DENIED),
    (ovh_exceptions.InvalidKey, ErrorKind.ACCESS_DENIED),
    (ovh_exceptions.Forbidden, ErrorKind.ACCESS_DENIED),
    # Failures below the API: DNS, connect, timeout, unparsable body
    (ovh_exceptions.HTTPError, ErrorKind.SERVICE_INTERNAL_ERROR),
    (ovh_exceptions.NetworkError, ErrorKind.SERVICE_INTERNAL_ERROR),
    (ovh_exceptions.InvalidResponse, ErrorKind.SERVICE_INTERNAL_ERROR),
)

# A bare status code such as "HTTP 404"; digits inside IDs or URL segments
# never match.
_STATUS_CODE_IN_TEXT = re.compile(r"(?<![\w/.:-])([45]\d\d)(?![\w/.:-])")


def classify_http_status(status_code: int) -> ErrorKind:
    """Map an HTTP status code to an error kind."""
    if status_code == 400:
        return ErrorKind.INVALID_REQUEST
    if status_code in (401, 403):
        return ErrorKind.ACCESS_DENIED
    if status_code == 404:
        return ErrorKind.NOT_FOUND
    if status_code == 409:
        return ErrorKind.ALREADY_EXISTS
    if status_code == 429:
        return ErrorKind.THROTTLING
    return ErrorKind.SERVICE_INTERNAL_ERROR


def classify_message(message: str, status_codes: bool = True) -> ErrorKind:
    """Map free-form error text to an error kind by token matching.

    A standalone status code with a known kind decides first. Callers whose
    text may embed request URLs pass status_codes=False.
    """
    text = (message or "").lower()
    if status_codes:
        match = _STATUS_CODE_IN_TEXT.search(text)
        if match:
            kind = classify_http_status(int(match.group(1)))
            if kind is not ErrorKind.SERVICE_INTERNAL_ERROR:
                return kind
    for kind, tokens in MESSAGE_TOKENS:
        if any(token in text for token in tokens):
            return kind
    return ErrorKind.SERVICE_INTERNAL_ERROR


def http_status_of(exc: BaseException) -> int | None:
    """Return the HTTP status attached to a provider exception, if any."""
    response = getattr(exc, "response", None)
    status_code = getattr(response, "status_code", None)
    if isinstance(status_code, int):
        return status_code
    return None


def classify(exc: BaseException) -> ErrorKind:
    """Classify any provider failure into exactly one error kind."""
    if isinstance(exc, TransportError):
        return exc.kind

    if isinstance(exc, ovh_exceptions.APIError):
        for exc_type, kind in _OVH_EXCEPTION_KINDS:
            if isinstance(exc, exc_type):
                return kind
        status_code = http_status_of(exc)
        if status_code is not None:
            return classify_http_status(status_code)
        return classify_message(str(exc), status_codes=False)

    return classify_message(str(exc))


def to_transport_error(exc: BaseException) -> TransportError:
    """Wrap a provider failure as a classified TransportError."""
    if isinstance(exc, TransportError):
        return exc

    kind = classify(exc)
    message = str(exc) or type(exc).__name__
    logger.debug("Classified %s as %s: %s", type(exc).__name__, kind.value, message)
    return TransportError(kind, message, http_status_of(exc))
