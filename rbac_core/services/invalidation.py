"""Cache invalidation signal: an in-process bus with a cross-process side channel."""

from __future__ import annotations

import logging
import time
from threading import RLock
from typing import Callable, List, Optional, Protocol

import httpx

from rbac_core.core.config import get_settings
from rbac_core.schemas.invalidation import InvalidationMessage

LOGGER = logging.getLogger("rbac_core.services.invalidation")

InvalidationCallback = Callable[[InvalidationMessage], None]


class InvalidationChannel(Protocol):
    """Transport shared by every process serving the same RBAC data."""

    async def next_token(self) -> Optional[int]:
        ...

    async def publish(self, message: InvalidationMessage) -> None:
        ...

    async def latest(self) -> Optional[InvalidationMessage]:
        ...

    async def aclose(self) -> None:
        ...


class NullInvalidationChannel(InvalidationChannel):
    """Single-process deployments: tokens are assigned locally."""

    async def next_token(self) -> Optional[int]:
        return None

    async def publish(self, message: InvalidationMessage) -> None:  # noqa: D401
        LOGGER.debug("rbac_invalidation_publish_skipped", extra={"token": message.token})

    async def latest(self) -> Optional[InvalidationMessage]:
        return None

    async def aclose(self) -> None:
        return None


class UpstashInvalidationChannel(InvalidationChannel):
    """Shares the latest token through Upstash Redis REST.

    `INCR` on the token key hands out tokens; the full message is stored under
    a second key that other processes read when they poll.
    """

    def __init__(self, *, url: str, token: str, prefix: str, client: Optional[httpx.AsyncClient] = None) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=url.rstrip("/"),
            headers={"Authorization": f"Bearer {token}"},
            timeout=5.0,
        )
        self._token_key = f"{prefix}:rbac:invalidation:token"
        self._message_key = f"{prefix}:rbac:invalidation:message"

    async def next_token(self) -> Optional[int]:
        result = await self._execute("INCR", self._token_key)
        return int(result) if result is not None else None

    async def publish(self, message: InvalidationMessage) -> None:
        await self._execute("SET", self._message_key, message.model_dump_json())

    async def latest(self) -> Optional[InvalidationMessage]:
        result = await self._execute("GET", self._message_key)
        if result is None:
            return None
        return InvalidationMessage.model_validate_json(str(result))

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _execute(self, *command: str) -> Optional[object]:
        response = await self._client.post("/", json=list(command))
        response.raise_for_status()
        payload = response.json()
        return payload.get("result")


class CacheInvalidationSignal:
    """Broadcasts "RBAC state changed" to every cache consumer.

    Delivery is best-effort: a lost cross-process message leaves other
    processes stale only until their cache TTL runs out.
    """

    def __init__(
        self,
        channel: Optional[InvalidationChannel] = None,
        *,
        poll_interval: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._channel = channel or NullInvalidationChannel()
        self._poll_interval = poll_interval
        self._clock = clock
        self._subscribers: List[InvalidationCallback] = []
        self._observed_token = 0
        self._last_poll: Optional[float] = None
        self._lock = RLock()

    @property
    def observed_token(self) -> int:
        with self._lock:
            return self._observed_token

    def subscribe(self, callback: InvalidationCallback) -> Callable[[], None]:
        """Register `callback`; returns a function that unregisters it."""

        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    async def broadcast(self, reason: str) -> InvalidationMessage:
        remote_token: Optional[int] = None
        try:
            remote_token = await self._channel.next_token()
        except (httpx.HTTPError, ValueError) as exc:
            LOGGER.warning("rbac_invalidation_token_unavailable", extra={"reason": reason, "error": str(exc)})

        with self._lock:
            token = max(remote_token or 0, self._observed_token + 1)
            self._observed_token = token
        message = InvalidationMessage(token=token, reason=reason)

        try:
            await self._channel.publish(message)
        except (httpx.HTTPError, ValueError) as exc:
            LOGGER.warning(
                "rbac_invalidation_publish_failed",
                extra={"token": token, "reason": reason, "error": str(exc)},
            )

        self._deliver(message)
        LOGGER.info("rbac_invalidation_broadcast", extra={"token": token, "reason": reason})
        return message

    async def poll(self, *, force: bool = False) -> Optional[InvalidationMessage]:
        """Deliver a newer token published by another process, if any."""

        now = self._clock()
        with self._lock:
            if not force and self._last_poll is not None and now - self._last_poll < self._poll_interval:
                return None
            self._last_poll = now

        try:
            message = await self._channel.latest()
        except (httpx.HTTPError, ValueError) as exc:
            LOGGER.warning("rbac_invalidation_poll_failed", extra={"error": str(exc)})
            return None
        if message is None:
            return None

        with self._lock:
            if message.token <= self._observed_token:
                return None
            self._observed_token = message.token

        LOGGER.info("rbac_invalidation_observed", extra={"token": message.token, "reason": message.reason})
        self._deliver(message)
        return message

    async def aclose(self) -> None:
        """Release the channel's transport; the signal must not be used afterwards."""

        with self._lock:
            self._subscribers.clear()
        await self._channel.aclose()

    def _deliver(self, message: InvalidationMessage) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(message)
            except Exception:  # noqa: BLE001 - one broken subscriber must not starve the rest
                LOGGER.exception("rbac_invalidation_subscriber_failed", extra={"token": message.token})


_signal: Optional[CacheInvalidationSignal] = None


def get_invalidation_signal() -> CacheInvalidationSignal:
    """Return the process-wide invalidation signal."""

    global _signal
    if _signal is not None:
        return _signal

    settings = get_settings()
    channel: InvalidationChannel
    if settings.redis_url and settings.redis_token:
        channel = UpstashInvalidationChannel(
            url=settings.redis_url,
            token=settings.redis_token,
            prefix=settings.redis_cache_prefix,
        )
    else:
        channel = NullInvalidationChannel()

    _signal = CacheInvalidationSignal(channel, poll_interval=settings.invalidation_poll_interval)
    return _signal


def set_invalidation_signal(signal: Optional[CacheInvalidationSignal]) -> None:
    """Override the cached signal (primarily for tests)."""

    global _signal
    _signal = signal


async def close_invalidation_signal() -> None:
    """Close the process-wide signal so the next lookup builds a fresh one."""

    global _signal
    signal, _signal = _signal, None
    if signal is not None:
        await signal.aclose()
