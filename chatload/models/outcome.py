"""Tagged outcome of a single exchange and its classification rule.

Every exchange ends in exactly one of three outcomes:

- ``Success``: the API answered with a ``choices`` field.
- ``ApplicationError``: the API answered, but with an ``error`` or
  ``detail`` field, or without the ``choices`` success field.
- ``TransportError``: the request never produced a response (DNS failure,
  refused connection, malformed URL, timeout, ...).

``classify_response`` is the single place that decides between them.
"""

import json
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any, Union


class OutcomeKind(str, Enum):
    """Tag of an exchange outcome as persisted in exchange records."""

    SUCCESS = "success"
    APPLICATION_ERROR = "application_error"
    TRANSPORT_ERROR = "transport_error"


class TransportCode(IntEnum):
    """curl-compatible exit codes used to tag transport failures."""

    OK = 0
    UNSUPPORTED_PROTOCOL = 1
    URL_MALFORMAT = 3
    COULDNT_RESOLVE_HOST = 6
    COULDNT_CONNECT = 7
    OPERATION_TIMEDOUT = 28
    SSL_CONNECT_ERROR = 35
    RECV_ERROR = 56


TRANSPORT_DESCRIPTIONS: dict[int, str] = {
    TransportCode.UNSUPPORTED_PROTOCOL: "Unsupported protocol",
    TransportCode.URL_MALFORMAT: "URL malformed",
    TransportCode.COULDNT_RESOLVE_HOST: "Could not resolve host",
    TransportCode.COULDNT_CONNECT: "Failed to connect",
    TransportCode.OPERATION_TIMEDOUT: "Operation timeout",
    TransportCode.SSL_CONNECT_ERROR: "SSL connect error",
    TransportCode.RECV_ERROR: "Failure receiving network data",
}

NO_SUCCESS_FIELD_MESSAGE = "no success field (choices) in response"
INVALID_JSON_MESSAGE = "response body is not valid JSON"


def describe_transport_code(code: int) -> str:
    """Human-readable description of a transport code."""
    return TRANSPORT_DESCRIPTIONS.get(code, f"Unknown transport error (code {code})")


@dataclass(frozen=True)
class Success:
    """The API returned a completion.

    Attributes:
        response_body: Decoded JSON response.
    """

    response_body: dict[str, Any]

    kind = OutcomeKind.SUCCESS

    @property
    def is_success(self) -> bool:
        return True

    @property
    def error_message(self) -> str | None:
        return None


@dataclass(frozen=True)
class ApplicationError:
    """The API answered but did not return a completion.

    Attributes:
        message: Message extracted from the response, or a synthesized one.
        response_body: Decoded response when it was JSON, else None.
        http_status: HTTP status code of the response, if any.
    """

    message: str
    response_body: Any = None
    http_status: int | None = None

    kind = OutcomeKind.APPLICATION_ERROR

    @property
    def is_success(self) -> bool:
        return False

    @property
    def error_message(self) -> str:
        return self.message


@dataclass(frozen=True)
class TransportError:
    """The request failed below HTTP.

    Attributes:
        code: curl-compatible transport code (never 0).
        description: Human-readable description of the failure.
    """

    code: int
    description: str

    kind = OutcomeKind.TRANSPORT_ERROR

    @property
    def is_success(self) -> bool:
        return False

    @property
    def error_message(self) -> str:
        return f"API request failed with status {self.code}"


Outcome = Union[Success, ApplicationError, TransportError]


def extract_error_message(body: dict[str, Any]) -> str | None:
    """Return the API error message carried by a decoded body, if any.

    A falsy ``error`` (null, false, empty string or object) counts as absent.
    ``error`` may be an object with a ``message`` or a bare value; ``detail``
    may be a string or a structured validation list.
    """
    error = body.get("error")
    if error:
        if isinstance(error, dict):
            message = error.get("message")
            if message not in (None, ""):
                return str(message)
            return json.dumps(error, sort_keys=True)
        return str(error)

    if "detail" in body and body["detail"] is not None:
        detail = body["detail"]
        if isinstance(detail, str):
            return detail
        return json.dumps(detail, sort_keys=True)

    return None


def classify_response(
    transport_code: int,
    body: Any = None,
    *,
    transport_description: str | None = None,
    http_status: int | None = None,
) -> Outcome:
    """Classify one exchange into exactly one outcome.

    Order of checks:
    1. Non-zero transport code -> TransportError.
    2. Body carries ``error`` or ``detail`` -> ApplicationError with that message.
    3. Body is not an object or lacks ``choices`` -> ApplicationError.
    4. Otherwise -> Success.

    Args:
        transport_code: 0 when a response was received, else a curl-style code.
        body: Decoded JSON body, or the raw text when decoding failed.
        transport_description: Optional description overriding the default.
        http_status: HTTP status of the response, if any.

    Returns:
        The classified Outcome.
    """
    if transport_code != TransportCode.OK:
        return TransportError(
            code=int(transport_code),
            description=transport_description or describe_transport_code(transport_code),
        )

    if isinstance(body, str):
        return ApplicationError(
            message=INVALID_JSON_MESSAGE,
            response_body=body,
            http_status=http_status,
        )

    if isinstance(body, dict):
        message = extract_error_message(body)
        if message is not None:
            return ApplicationError(
                message=message,
                response_body=body,
                http_status=http_status,
            )
        if "choices" in body:
            return Success(response_body=body)

    return ApplicationError(
        message=NO_SUCCESS_FIELD_MESSAGE,
        response_body=body,
        http_status=http_status,
    )


def outcome_to_dict(outcome: Outcome) -> dict[str, Any]:
    """Serialize an outcome into the fields of an exchange record."""
    if isinstance(outcome, Success):
        return {
            "outcome": outcome.kind.value,
            "status": TransportCode.OK.value,
            "response": outcome.response_body,
        }
    if isinstance(outcome, ApplicationError):
        return {
            "outcome": outcome.kind.value,
            "status": TransportCode.OK.value,
            "http_status": outcome.http_status,
            "error": outcome.message,
            "response": outcome.response_body,
        }
    return {
        "outcome": outcome.kind.value,
        "status": outcome.code,
        "error": outcome.error_message,
        "error_description": outcome.description,
    }


def outcome_from_dict(data: dict[str, Any]) -> Outcome:
    """Rebuild an outcome from exchange record fields.

    Args:
        data: Mapping with at least ``outcome`` and ``status`` keys.

    Returns:
        The Outcome the record was written from.
    """
    kind = OutcomeKind(data["outcome"])
    if kind is OutcomeKind.SUCCESS:
        return Success(response_body=data.get("response") or {})
    if kind is OutcomeKind.APPLICATION_ERROR:
        return ApplicationError(
            message=data.get("error") or NO_SUCCESS_FIELD_MESSAGE,
            response_body=data.get("response"),
            http_status=data.get("http_status"),
        )
    code = int(data["status"])
    return TransportError(
        code=code,
        description=data.get("error_description") or describe_transport_code(code),
    )
