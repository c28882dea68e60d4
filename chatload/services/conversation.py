"""ConversationRunner: the sequential exchanges of one credential."""

import random
import time
import uuid
from collections.abc import Callable

from chatload.api.schemas import ConversationSummaryRecord
from chatload.core.logging import get_logger
from chatload.core.metrics import ACTIVE_CONVERSATIONS, CONVERSATION_COUNT
from chatload.models.run import Conversation, Credential, Exchange
from chatload.services.dispatcher import Dispatcher
from chatload.services.store import ResultStore, SummaryLevel
from chatload.utils.prompts import PromptSource

logger = get_logger(__name__)


def new_conversation_id() -> str:
    """Run-unique conversation id, e.g. ``conv_1718000000_3f9c2a1b``."""
    return f"conv_{int(time.time())}_{uuid.uuid4().hex[:8]}"


class ConversationRunner:
    """Runs the exchanges of one conversation strictly one after another.

    Exchange i+1 starts only after exchange i has been dispatched and
    recorded. A random pause drawn from [delay_min, delay_max) separates
    consecutive exchanges. Failed exchanges do not stop the conversation.

    Args:
        dispatcher: Sends the individual requests.
        store: Receives every exchange and the conversation summary.
        default_model: Model used when the credential has none bound.
        timeout: Per-exchange network timeout.
        delay_min: Lower bound of the pause, in seconds.
        delay_max: Exclusive upper bound of the pause, in seconds.
        rng: Random source for pauses.
        sleep: Sleep function, replaceable in tests.
    """

    def __init__(
        self,
        dispatcher: Dispatcher,
        store: ResultStore,
        default_model: str = "default",
        timeout: float | None = None,
        delay_min: float = 1.0,
        delay_max: float = 3.0,
        rng: random.Random | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._dispatcher = dispatcher
        self._store = store
        self._default_model = default_model
        self._timeout = timeout
        self._delay_min = delay_min
        self._delay_max = delay_max
        self._rng = rng or random.Random()
        self._sleep = sleep

    def pause_seconds(self) -> float:
        """Draw one inter-exchange pause from [delay_min, delay_max)."""
        return self._delay_min + self._rng.random() * (self._delay_max - self._delay_min)

    def run(
        self,
        credential: Credential,
        exchange_count: int,
        prompt_source: PromptSource,
        batch_index: int,
        conversation_id: str | None = None,
    ) -> Conversation:
        """Run one conversation to completion.

        Args:
            credential: Credential used for every exchange.
            exchange_count: Number of exchanges to attempt.
            prompt_source: Where prompts are sampled from.
            batch_index: Batch the conversation belongs to.
            conversation_id: Explicit id; generated when omitted.

        Returns:
            Conversation holding every attempted exchange.
        """
        conversation = Conversation(
            conversation_id=conversation_id or new_conversation_id(),
            credential=credential,
            batch_index=batch_index,
        )
        model = credential.model or self._default_model
        prompts = prompt_source.sample(exchange_count)

        log = logger.bind(
            conversation_id=conversation.conversation_id,
            credential_id=credential.id,
            batch=batch_index,
        )
        log.info("Starting conversation", api_key=credential.masked_key, exchanges=exchange_count)

        ACTIVE_CONVERSATIONS.inc()
        conversation.started_at = time.time()
        try:
            for index, prompt in enumerate(prompts, start=1):
                result = self._dispatcher.dispatch(
                    credential,
                    prompt,
                    model,
                    timeout=self._timeout,
                    conversation_id=conversation.conversation_id,
                )
                exchange = Exchange(
                    conversation_id=conversation.conversation_id,
                    index=index,
                    prompt=prompt,
                    model=model,
                    started_at=result.started_at,
                    duration=result.duration,
                    outcome=result.outcome,
                    request=result.request,
                )
                self._store.record(batch_index, credential.id, index, exchange)
                conversation.exchanges.append(exchange)

                if index < len(prompts):
                    self._sleep(self.pause_seconds())
            conversation.finished_at = time.time()
        finally:
            ACTIVE_CONVERSATIONS.dec()

        self._store.record_summary(
            SummaryLevel.CONVERSATION,
            ConversationSummaryRecord(
                conversation_id=conversation.conversation_id,
                credential_id=credential.id,
                api_key=credential.masked_key,
                model=model,
                exchange_count=conversation.exchange_count,
                success_count=conversation.success_count,
                failure_count=conversation.failure_count,
                total_duration=conversation.total_duration,
            ),
            batch_index=batch_index,
            credential_id=credential.id,
        )
        CONVERSATION_COUNT.inc()
        log.info(
            "Completed conversation",
            succeeded=conversation.success_count,
            failed=conversation.failure_count,
            duration=round(conversation.total_duration, 3),
        )
        return conversation
