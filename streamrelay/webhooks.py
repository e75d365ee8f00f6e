import asyncio
import logging
from .errors import ChannelSetupError
from .normalize import follow, stream
from .oauth import Identity
from .utils import sleep

logger = logging.getLogger(__name__)


class WebhookChannel:
    """
    Follow and stream change subscriptions for the broadcaster.

    Every setup stops all subscriptions of the previous generation before
    creating the new set, the two sets are never mixed.
    """
    def __init__(self, relay, factory, settle_delay=None):
        self.relay = relay
        self.factory = factory
        self.settle_delay = relay.config.webhook_settle_delay if settle_delay is None else settle_delay
        self.listener = None
        self.subscriptions = []
        self._lock = asyncio.Lock()

    async def _stop_all(self, subscriptions):
        for sub in subscriptions:
            try:
                await sub.stop()
            except Exception as e:
                logger.error(f"Error stopping webhook subscription {sub}: {e}")

    async def setup(self):
        async with self._lock:
            await self._setup()

    async def _setup(self):
        if self.listener:
            subscriptions, self.subscriptions = self.subscriptions, []
            await self._stop_all(subscriptions)
            self.listener = None
        # let twitch release the previous listener
        await sleep(self.settle_delay)
        user_id = self.relay.config.user_id
        api = self.relay.api
        try:
            listener = self.factory(self.relay.sessions[Identity.BROADCASTER])
            await listener.listen()
        except Exception as e:
            logger.error(f"Twitch webhook listener failed to start: {e}")
            raise ChannelSetupError("webhooks", f"Could not start webhook listener: {e}", [e]) from e
        results = await asyncio.gather(
            listener.subscribe_to_follows_to_user(user_id, self._make_handler("follow", follow, api, user_id)),
            listener.subscribe_to_stream_changes(user_id, self._make_handler("stream", stream, api, user_id)),
            return_exceptions=True
        )
        errors = [r for r in results if isinstance(r, Exception)]
        if errors:
            # no partial generation is kept
            await self._stop_all([r for r in results if not isinstance(r, Exception)])
            self.listener = listener
            logger.error(f"Twitch webhook subscriptions failed: {errors}")
            raise ChannelSetupError("webhooks", f"{len(errors)} webhook subscription(s) failed", errors)
        self.listener = listener
        self.subscriptions = list(results)
        logger.info(f"Twitch webhooks subscribed ({len(self.subscriptions)}).")

    def _make_handler(self, name, normalizer, api, channel):
        async def handler(payload):
            try:
                event = await normalizer(api, channel, payload)
            except Exception:
                logger.exception(f"Error normalizing webhook {name} event")
                return
            self.relay.events.emit(event)
        handler.__name__ = f"on_{name}"
        return handler

    async def close(self):
        async with self._lock:
            subscriptions, self.subscriptions = self.subscriptions, []
            await self._stop_all(subscriptions)
            self.listener = None
