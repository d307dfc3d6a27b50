"""
Runtime Configuration
=====================
Configuration that can change while requests are being authenticated.

Two independent groups, each published as an immutable snapshot:

- FeatureToggles: V2 signatures, chunked uploads, presigned expiry check
  and the authorization context policy. Guarded by a threading lock.
- TransportChannel: endpoint, reconnect backoff and the open verifier.
  Guarded by an asyncio lock held across channel construction.

Readers take one snapshot per authentication and never lock. A replaced
channel stays open while any authentication still holds it.
"""

import asyncio
import threading
from contextlib import asynccontextmanager
from dataclasses import dataclass, replace
from typing import AsyncIterator, Callable, Dict, Optional, Set

import structlog

from ..exceptions import ChannelCreationError
from ..metrics import record_channel_update
from ..models import AuthParamMode
from ..transport import build_verifier
from ..transport.base import ReconnectBackoff, Verifier
from .settings import HandoffSettings

logger = structlog.get_logger(__name__)

VerifierFactory = Callable[[str, str, ReconnectBackoff, float], Verifier]


@dataclass(frozen=True)
class FeatureToggles:
    """Administrative switches read once per authentication."""
    enable_signature_v2: bool = True
    enable_chunked_upload: bool = True
    presigned_expiry_check: bool = False
    authorization_mode: AuthParamMode = AuthParamMode.ALWAYS

    @classmethod
    def from_settings(cls, settings: HandoffSettings) -> "FeatureToggles":
        return cls(
            enable_signature_v2=settings.enable_signature_v2,
            enable_chunked_upload=settings.enable_chunked_upload,
            presigned_expiry_check=settings.enable_presigned_expiry_check,
            authorization_mode=settings.authorization_mode,
        )


@dataclass(frozen=True)
class TransportChannel:
    """An open connection to the Authenticator and how it was built."""
    transport: str
    endpoint: str
    backoff: ReconnectBackoff
    verifier: Verifier


@dataclass(frozen=True)
class RuntimeSnapshot:
    toggles: FeatureToggles
    channel: Optional[TransportChannel]


class RuntimeConfig:
    """
    Holder for the mutable handoff configuration.

    Example:
        config = RuntimeConfig(settings)
        await config.set_channel_uri(settings.endpoint, fatal=True)
        config.set_signature_v2(False)
        snap = config.snapshot()
    """

    def __init__(
        self,
        settings: HandoffSettings,
        verifier_factory: Optional[VerifierFactory] = None,
    ):
        self.transport = settings.transport
        self.verify_timeout = settings.verify_timeout
        self.close_grace = settings.channel_close_grace
        self._factory = verifier_factory or build_verifier

        self._toggles = FeatureToggles.from_settings(settings)
        self._toggle_lock = threading.Lock()

        self._backoff = settings.reconnect_backoff
        self._channel: Optional[TransportChannel] = None
        self._channel_lock = asyncio.Lock()
        self._users: Dict[Verifier, int] = {}
        self._retiring: Set[Verifier] = set()
        self._closing: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Readers
    # ------------------------------------------------------------------

    @property
    def toggles(self) -> FeatureToggles:
        return self._toggles

    @property
    def channel(self) -> Optional[TransportChannel]:
        return self._channel

    @property
    def backoff(self) -> ReconnectBackoff:
        return self._backoff

    @property
    def endpoint(self) -> Optional[str]:
        channel = self._channel
        return channel.endpoint if channel else None

    def snapshot(self) -> RuntimeSnapshot:
        """Both groups as seen by a single authentication."""
        return RuntimeSnapshot(toggles=self._toggles, channel=self._channel)

    # ------------------------------------------------------------------
    # Toggle writers
    # ------------------------------------------------------------------

    def _update_toggles(self, **changes) -> None:
        with self._toggle_lock:
            self._toggles = replace(self._toggles, **changes)
        logger.info("handoff_toggles_updated", **{k: str(v) for k, v in changes.items()})

    def set_signature_v2(self, enabled: bool) -> None:
        self._update_toggles(enable_signature_v2=enabled)

    def set_chunked_upload_mode(self, enabled: bool) -> None:
        self._update_toggles(enable_chunked_upload=enabled)

    def set_presigned_expiry_check(self, enabled: bool) -> None:
        self._update_toggles(presigned_expiry_check=enabled)

    def set_authorization_mode(self, mode: AuthParamMode) -> None:
        self._update_toggles(authorization_mode=mode)

    # ------------------------------------------------------------------
    # Channel writers
    # ------------------------------------------------------------------

    def set_channel_args(self, backoff: ReconnectBackoff) -> None:
        """
        Store reconnect backoff for the next channel built.

        The current channel keeps its options; call ``set_channel_uri`` to
        rebuild it.
        """
        self._backoff = backoff
        logger.info(
            "handoff_channel_args_updated",
            initial_ms=backoff.initial_ms,
            min_ms=backoff.min_ms,
            max_ms=backoff.max_ms,
        )

    async def set_channel_uri(self, endpoint: str, fatal: bool = False) -> bool:
        """
        Build a channel to ``endpoint`` and publish it.

        The new verifier is constructed before the swap. The replaced one
        is closed ``channel_close_grace`` seconds after the last
        authentication holding it (see ``acquire``) lets go.

        Args:
            endpoint: Authenticator URL or gRPC target
            fatal: Raise on construction failure instead of keeping the
                previous channel

        Returns:
            True if the new channel was published

        Raises:
            ChannelCreationError: On construction failure when ``fatal``
        """
        async with self._channel_lock:
            backoff = self._backoff
            try:
                verifier = self._factory(self.transport, endpoint, backoff, self.verify_timeout)
            except ChannelCreationError as e:
                record_channel_update(False)
                if fatal:
                    raise
                logger.error(
                    "handoff_channel_rejected",
                    endpoint=endpoint,
                    error=str(e),
                    keeping=self.endpoint,
                )
                return False

            old = self._channel
            self._channel = TransportChannel(
                transport=self.transport,
                endpoint=endpoint,
                backoff=backoff,
                verifier=verifier,
            )
            record_channel_update(True)
            logger.info("handoff_channel_updated", transport=self.transport, endpoint=endpoint)

        if old is not None:
            self._retire(old.verifier)
        return True

    # ------------------------------------------------------------------
    # Channel lifetime
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[RuntimeSnapshot]:
        """
        Take a snapshot and hold its channel open until the block exits.

        A channel replaced while held stays usable; it is closed only once
        every holder has released it.

        Example:
            async with config.acquire() as snap:
                await snap.channel.verifier.verify(request)
        """
        snapshot = self.snapshot()
        verifier = snapshot.channel.verifier if snapshot.channel else None
        if verifier is not None:
            self._users[verifier] = self._users.get(verifier, 0) + 1
        try:
            yield snapshot
        finally:
            if verifier is not None:
                self._release(verifier)

    def in_use(self, verifier: Verifier) -> int:
        """Number of authentications currently holding ``verifier``."""
        return self._users.get(verifier, 0)

    def _release(self, verifier: Verifier) -> None:
        count = self._users[verifier] - 1
        if count:
            self._users[verifier] = count
            return
        del self._users[verifier]
        if verifier in self._retiring:
            self._schedule_close(verifier)

    def _retire(self, verifier: Verifier) -> None:
        self._retiring.add(verifier)
        if verifier in self._users:
            logger.debug(
                "handoff_channel_retire_deferred",
                endpoint=verifier.endpoint,
                in_use=self._users[verifier],
            )
            return
        self._schedule_close(verifier)

    def _schedule_close(self, verifier: Verifier) -> None:
        task = asyncio.get_running_loop().create_task(self._close_later(verifier))
        self._closing.add(task)
        task.add_done_callback(self._closing.discard)

    async def _close_later(self, verifier: Verifier) -> None:
        await asyncio.sleep(self.close_grace)
        await self._close_retired(verifier)

    async def _close_retired(self, verifier: Verifier) -> None:
        if verifier not in self._retiring:
            return
        await verifier.aclose()
        self._retiring.discard(verifier)
        logger.debug("handoff_channel_closed", endpoint=verifier.endpoint)

    async def aclose(self) -> None:
        """Close the current channel and every retired one not yet closed."""
        for task in list(self._closing):
            task.cancel()
        if self._closing:
            await asyncio.gather(*self._closing, return_exceptions=True)
        for verifier in list(self._retiring):
            await self._close_retired(verifier)
        async with self._channel_lock:
            channel, self._channel = self._channel, None
        if channel is not None:
            await channel.verifier.aclose()
