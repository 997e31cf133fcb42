"""Outbound delivery — sends persona text through a channel webhook.

One call to ``deliver`` walks a small state machine:

    IDLE → GATING → CHUNKING → SENDING → COMPLETED | SUPPRESSED | FAILED

Chunks of one delivery go out strictly in order with a pacing delay in
between. Deliveries for different (persona, channel) pairs run
concurrently; a second delivery for a pair that is already sending is
rejected (``deliver`` returns None).
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Optional

from ..avatars import AvatarManager
from ..models import DeliveryOptions, DeliveryResult, MessageChunk, Persona
from ..platform.base import Channel, EndpointNotFoundError, PlatformClient
from ..tracking import ErrorTracker
from .chunker import DEFAULT_CHAR_LIMIT, build_chunks, prepare_and_split
from .dedup import DeduplicationGuard, PendingSendRegistry
from .errors import classify_error
from .markers import is_blocked, is_error_content, strip_error_marker, with_error_reference
from .webhooks import DEFAULT_WEBHOOK_NAME, WebhookRegistry

logger = logging.getLogger("herald.delivery")

UNKNOWN_DISPLAY_NAME = "Unknown Persona"
UNKNOWN_PERSONA_KEY = "unknown"
DEFAULT_ERROR_MESSAGE = "Sorry, something went wrong on my end. ||*(an error has occurred)*||"


class DeliveryState(str, Enum):
    IDLE = "idle"
    GATING = "gating"
    CHUNKING = "chunking"
    SENDING = "sending"
    COMPLETED = "completed"
    SUPPRESSED = "suppressed"
    FAILED = "failed"


@dataclass
class DeliveryContext:
    """Per-call bookkeeping, mostly for logs."""
    channel_id: str
    persona_key: str
    state: DeliveryState = DeliveryState.IDLE
    chunk_index: int = 0
    total_chunks: int = 0
    is_error_message: bool = False
    history: list[DeliveryState] = field(default_factory=lambda: [DeliveryState.IDLE])


class DeliveryOrchestrator:
    """Coordinates dedup, webhooks, chunking, avatars, and tracked sends.

    All state stores are owned by the orchestrator and can be injected;
    ``reset()`` clears them between tests.
    """

    def __init__(
        self,
        client: PlatformClient,
        avatars: Optional[AvatarManager] = None,
        tracker: Optional[ErrorTracker] = None,
        webhooks: Optional[WebhookRegistry] = None,
        dedup: Optional[DeduplicationGuard] = None,
        pending: Optional[PendingSendRegistry] = None,
        char_limit: int = DEFAULT_CHAR_LIMIT,
        chunk_delay: float = 0.75,
        webhook_name: str = DEFAULT_WEBHOOK_NAME,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.tracker = tracker or ErrorTracker()
        self.client = self.tracker.wrap(client)
        self.avatars = avatars
        self.webhooks = webhooks or WebhookRegistry(self.client, webhook_name)
        self.dedup = dedup or DeduplicationGuard()
        self.pending = pending or PendingSendRegistry()
        self.char_limit = char_limit
        self.chunk_delay = chunk_delay
        self._sleep = sleep
        self.last_context: Optional[DeliveryContext] = None

    @staticmethod
    def _transition(ctx: DeliveryContext, state: DeliveryState):
        ctx.state = state
        ctx.history.append(state)
        logger.debug(f"Delivery {ctx.persona_key}@{ctx.channel_id}: → {state.value}")

    async def _resolve_avatar(self, persona: Optional[Persona]) -> Optional[str]:
        if self.avatars is None:
            return persona.avatar_url if persona else None
        if persona is None:
            return self.avatars.fallback_url
        return await self.avatars.resolve_avatar(persona.full_name, persona.avatar_url)

    @staticmethod
    def build_payload(
        chunk: MessageChunk,
        channel: Channel,
        display_name: str,
        avatar_url: Optional[str],
        options: DeliveryOptions,
    ) -> dict:
        """Build the webhook payload for one chunk.

        Embeds and attachments ride on the last chunk only, so they appear
        after the full text.
        """
        payload = {
            "content": chunk.content,
            "username": display_name,
            "allowed_mentions": {"parse": ["users", "roles"]},
        }
        if avatar_url:
            payload["avatar_url"] = avatar_url
        if channel.is_thread:
            payload["thread_id"] = channel.id
        if chunk.is_last:
            if options.embed:
                payload["embeds"] = [options.embed]
            if options.attachments:
                payload["files"] = list(options.attachments)
        return payload

    async def deliver(
        self,
        channel: Channel,
        content: str,
        persona: Optional[Persona] = None,
        options: Optional[DeliveryOptions] = None,
    ) -> Optional[DeliveryResult]:
        """Deliver content to a channel as the given persona.

        Args:
            channel: Target channel (threads are sent via the parent's webhook)
            content: Text to send; split into chunks when too long
            persona: Persona to send as (None → generic display name)
            options: Embed/attachments/model indicator/dedup actor

        Returns:
            DeliveryResult, a virtual duplicate result when every chunk was
            suppressed, or None when another delivery for the same persona
            and channel is still in flight.

        Raises:
            PlatformError: A chunk send failed; remaining chunks are skipped.
        """
        options = options or DeliveryOptions()
        persona_key = persona.full_name if persona else UNKNOWN_PERSONA_KEY
        display_name = (persona.display_name or persona.full_name) if persona else UNKNOWN_DISPLAY_NAME
        content = content if isinstance(content, str) else ""

        is_error = options.is_error_message
        if is_error is None:
            is_error = is_error_content(content)
        content = strip_error_marker(content)

        ctx = DeliveryContext(channel_id=channel.id, persona_key=persona_key, is_error_message=is_error)
        self.last_context = ctx

        self._transition(ctx, DeliveryState.GATING)
        token = self.pending.try_begin(persona_key, channel.id, content, is_error_message=is_error)
        if token is None:
            self._transition(ctx, DeliveryState.SUPPRESSED)
            return None

        try:
            return await self._deliver_chunks(ctx, channel, content, persona, persona_key, display_name, options, is_error)
        except Exception as e:
            self._transition(ctx, DeliveryState.FAILED)
            if isinstance(e, EndpointNotFoundError):
                self.webhooks.invalidate(channel.endpoint_key)
            error_id = getattr(e, "herald_error_id", None)
            if error_id is None:
                error_id = self.tracker.track(
                    e,
                    category=classify_error(e),
                    operation="deliver",
                    metadata={
                        "channel_id": channel.id,
                        "persona": persona_key,
                        "chunk": ctx.chunk_index,
                        "total_chunks": ctx.total_chunks,
                    },
                    is_critical=True,
                )
                e.herald_error_id = error_id
            logger.error(
                f"[{error_id}] Delivery as {display_name} to channel {channel.id} failed at chunk "
                f"{ctx.chunk_index + 1}/{ctx.total_chunks or '?'}: {type(e).__name__}: {e}"
            )
            raise
        finally:
            self.pending.end(token)

    async def _deliver_chunks(
        self,
        ctx: DeliveryContext,
        channel: Channel,
        content: str,
        persona: Optional[Persona],
        persona_key: str,
        display_name: str,
        options: DeliveryOptions,
        is_error: bool,
    ) -> DeliveryResult:
        webhook = await self.webhooks.get_or_create(channel)

        self._transition(ctx, DeliveryState.CHUNKING)
        chunks = build_chunks(prepare_and_split(content, options.model_indicator, self.char_limit), is_error)
        ctx.total_chunks = len(chunks)
        avatar_url = await self._resolve_avatar(persona)
        actor_key = options.actor_key or persona_key

        self._transition(ctx, DeliveryState.SENDING)
        sent_ids: list[str] = []
        for chunk in chunks:
            ctx.chunk_index = chunk.index

            if is_blocked(chunk.content):
                logger.info(f"Chunk {chunk.index + 1}/{len(chunks)} for {channel.id} is blocked content, skipping")
                continue

            signature = self.dedup.make_signature(
                channel.id, actor_key, chunk.content, position=f"{chunk.index + 1}/{len(chunks)}"
            )
            if self.dedup.should_suppress(signature):
                continue

            if sent_ids and self.chunk_delay > 0:
                await self._sleep(self.chunk_delay)

            payload = self.build_payload(chunk, channel, display_name, avatar_url, options)
            logger.debug(
                f"Sending chunk {chunk.index + 1}/{len(chunks)} as {display_name} "
                f"(length={len(chunk.content)}, embeds={'embeds' in payload}, error={chunk.is_error})"
            )
            try:
                message = await self.client.send(webhook, payload)
            except Exception:
                # The guarded send never happened; allow a retry
                self.dedup.forget(signature)
                raise
            sent_ids.append(message.id)

        self._transition(ctx, DeliveryState.COMPLETED)

        if not sent_ids:
            placeholder = f"virtual-{self.dedup.make_signature(channel.id, actor_key, content)[:12]}"
            logger.info(f"All {len(chunks)} chunk(s) for {channel.id} suppressed; returning virtual result")
            return DeliveryResult(first_message_id=placeholder, all_message_ids=[placeholder], is_duplicate=True)

        logger.info(f"Delivered {len(sent_ids)}/{len(chunks)} chunk(s) as {display_name} to {channel.id}")
        return DeliveryResult(first_message_id=sent_ids[0], all_message_ids=sent_ids, is_duplicate=False)

    @staticmethod
    def failure_notice(persona: Optional[Persona], error_id: str) -> str:
        """The persona's own error text (or a generic one) with the reference id."""
        message = (persona.error_message if persona else None) or DEFAULT_ERROR_MESSAGE
        return with_error_reference(message, error_id)

    async def notify_failure(
        self,
        channel: Channel,
        persona: Optional[Persona],
        error: BaseException,
    ) -> Optional[DeliveryResult]:
        """Tell the channel, in the persona's voice, that a delivery failed.

        Uses the correlation id already attached to the error, or tracks it
        now. Failures of the notice itself propagate.
        """
        error_id = getattr(error, "herald_error_id", None)
        if error_id is None:
            error_id = self.tracker.track(error, category=classify_error(error), operation="deliver")
            error.herald_error_id = error_id
        notice = self.failure_notice(persona, error_id)
        return await self.deliver(channel, notice, persona, DeliveryOptions(is_error_message=True))

    def handle_channel_deleted(self, channel_id: str):
        self.webhooks.on_channel_deleted(channel_id)

    def reset(self):
        """Clear every owned state store."""
        self.dedup.reset()
        self.pending.reset()
        self.webhooks.reset()
        self.tracker.reset()
        if self.avatars is not None:
            self.avatars.reset()
        self.last_context = None
