"""Dispatcher: sends one chat-completion request and classifies the outcome.

The dispatcher never retries and never raises for a failed request.
Transport failures are mapped onto curl-compatible codes so result trees
stay comparable with those of the legacy shell scripts.
"""

import time
from dataclasses import dataclass
from typing import Any

import requests
from requests.adapters import HTTPAdapter
from urllib3.exceptions import NameResolutionError

from chatload.api.schemas import ChatCompletionRequest
from chatload.core.logging import get_logger
from chatload.core.metrics import EXCHANGE_COUNT, EXCHANGE_LATENCY, TRANSPORT_ERROR_COUNT
from chatload.models.outcome import (
    Outcome,
    TransportCode,
    TransportError,
    classify_response,
    describe_transport_code,
)
from chatload.models.run import Credential

logger = get_logger(__name__)

_RESOLVE_FAILURE_HINTS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo failed",
    "failed to resolve",
    "temporary failure in name resolution",
)


@dataclass(frozen=True)
class DispatchResult:
    """Outcome of one request plus its timing.

    Attributes:
        outcome: Classified outcome.
        started_at: Epoch seconds when the request was issued.
        duration: Wall-clock seconds until the outcome was known.
        request: JSON body that was sent.
    """

    outcome: Outcome
    started_at: float
    duration: float
    request: dict[str, Any]


def transport_code_for(exc: requests.RequestException) -> int:
    """Map a requests exception to a curl-compatible transport code.

    Args:
        exc: Exception raised by ``requests``.

    Returns:
        Non-zero transport code.
    """
    if isinstance(exc, requests.exceptions.InvalidSchema):
        return TransportCode.UNSUPPORTED_PROTOCOL
    if isinstance(
        exc,
        (
            requests.exceptions.MissingSchema,
            requests.exceptions.InvalidURL,
            requests.exceptions.URLRequired,
        ),
    ):
        return TransportCode.URL_MALFORMAT
    # ConnectTimeout is also a ConnectionError; timeouts win
    if isinstance(exc, requests.exceptions.Timeout):
        return TransportCode.OPERATION_TIMEDOUT
    if isinstance(exc, requests.exceptions.SSLError):
        return TransportCode.SSL_CONNECT_ERROR
    if isinstance(exc, requests.exceptions.ConnectionError):
        if _is_resolution_failure(exc):
            return TransportCode.COULDNT_RESOLVE_HOST
        return TransportCode.COULDNT_CONNECT
    return TransportCode.RECV_ERROR


def _is_resolution_failure(exc: BaseException) -> bool:
    """Walk the exception chain looking for a DNS failure."""
    seen: set[int] = set()
    pending: list[Any] = [exc]
    while pending:
        current = pending.pop()
        if current is None or id(current) in seen:
            continue
        seen.add(id(current))
        if isinstance(current, NameResolutionError):
            return True
        if isinstance(current, BaseException):
            if any(hint in str(current).lower() for hint in _RESOLVE_FAILURE_HINTS):
                return True
            pending.extend(current.args)
            pending.append(current.__cause__)
            pending.append(current.__context__)
            pending.append(getattr(current, "reason", None))
    return False


def build_session(pool_size: int = 10) -> requests.Session:
    """Create a session whose connection pool fits the concurrency limit.

    Args:
        pool_size: Maximum number of pooled connections per host.

    Returns:
        Session with retries disabled.
    """
    session = requests.Session()
    adapter = HTTPAdapter(
        pool_connections=pool_size,
        pool_maxsize=pool_size,
        max_retries=0,
    )
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


class Dispatcher:
    """Sends single chat-completion requests.

    Args:
        endpoint: Full URL of the chat-completion endpoint.
        session: HTTP session shared by all worker threads.
        timeout: Default per-request timeout in seconds.
        system_prompt: System message sent with every request.
        verbose: Log request and response bodies.
    """

    def __init__(
        self,
        endpoint: str,
        session: requests.Session | None = None,
        timeout: float = 60.0,
        system_prompt: str = "You are a helpful assistant.",
        verbose: bool = False,
    ) -> None:
        self._endpoint = endpoint
        self._session = session or build_session()
        self._timeout = timeout
        self._system_prompt = system_prompt
        self._verbose = verbose

    @property
    def endpoint(self) -> str:
        return self._endpoint

    def build_request(self, prompt: str, model: str) -> dict[str, Any]:
        """JSON body for one exchange."""
        return ChatCompletionRequest.build(
            model=model,
            system_prompt=self._system_prompt,
            prompt=prompt,
        ).model_dump()

    def dispatch(
        self,
        credential: Credential,
        prompt: str,
        model: str,
        timeout: float | None = None,
        conversation_id: str | None = None,
    ) -> DispatchResult:
        """Send one request and classify what came back.

        Args:
            credential: Credential whose raw key goes in the Authorization header.
            prompt: User prompt.
            model: Model to request.
            timeout: Network timeout; defaults to the dispatcher's timeout.
            conversation_id: Only used for log context.

        Returns:
            DispatchResult with the outcome and timing.
        """
        body = self.build_request(prompt, model)
        headers = {
            "accept": "application/json",
            "Authorization": credential.key,
            "Content-Type": "application/json",
        }

        if self._verbose:
            logger.info(
                "Request",
                conversation_id=conversation_id,
                endpoint=self._endpoint,
                api_key=credential.masked_key,
                body=body,
            )

        started_at = time.time()
        start = time.perf_counter()
        response: requests.Response | None = None
        transport_code = TransportCode.OK
        transport_description: str | None = None
        try:
            response = self._session.post(
                self._endpoint,
                json=body,
                headers=headers,
                timeout=timeout if timeout is not None else self._timeout,
            )
            # Reading the body can still fail mid-stream
            content = response.content
        except requests.RequestException as e:
            transport_code = transport_code_for(e)
            transport_description = f"{describe_transport_code(transport_code)}: {e}"
            content = b""
        duration = time.perf_counter() - start

        if transport_code != TransportCode.OK or response is None:
            outcome = classify_response(
                transport_code,
                transport_description=transport_description,
            )
        else:
            outcome = classify_response(
                TransportCode.OK,
                _decode(response, content),
                http_status=response.status_code,
            )

        self._observe(outcome, duration, conversation_id)
        return DispatchResult(
            outcome=outcome,
            started_at=started_at,
            duration=duration,
            request=body,
        )

    def _observe(self, outcome: Outcome, duration: float, conversation_id: str | None) -> None:
        EXCHANGE_COUNT.labels(outcome=outcome.kind.value).inc()
        EXCHANGE_LATENCY.labels(outcome=outcome.kind.value).observe(duration)

        if isinstance(outcome, TransportError):
            TRANSPORT_ERROR_COUNT.labels(code=str(outcome.code)).inc()
            logger.error(
                "Transport failure",
                conversation_id=conversation_id,
                code=outcome.code,
                description=outcome.description,
                endpoint=self._endpoint,
            )
        elif not outcome.is_success:
            logger.error(
                "Request failed",
                conversation_id=conversation_id,
                error=outcome.error_message,
            )

        if self._verbose:
            logger.info(
                "Response",
                conversation_id=conversation_id,
                duration=round(duration, 3),
                outcome=outcome.kind.value,
                body=getattr(outcome, "response_body", None),
            )


def _decode(response: requests.Response, content: bytes) -> Any:
    """Decode a JSON body, falling back to the raw text."""
    if not content:
        return ""
    try:
        return response.json()
    except ValueError:
        return content.decode(response.encoding or "utf-8", errors="replace")
