import asyncio
import logging
from .errors import ChannelSetupError
from .normalize import bits, redemption
from .oauth import Identity

logger = logging.getLogger(__name__)


class NotificationChannel:
    """ Bits and channel point redemptions for the broadcaster """
    def __init__(self, relay, factory):
        self.relay = relay
        self.factory = factory
        self.client = None

    async def setup(self):
        user_id = self.relay.config.user_id
        api = self.relay.api
        try:
            # the previous client is just dropped, its connection is owned by the process
            client = self.factory(self.relay.sessions[Identity.BROADCASTER])
            await client.listen()
            await asyncio.gather(
                client.on_bits(user_id, self._make_handler("bits", bits, api, user_id)),
                client.on_redemption(user_id, self._make_handler("redemption", redemption, api, user_id))
            )
        except Exception as e:
            logger.error(f"Twitch PubSub setup failed: {e}")
            raise ChannelSetupError("pubsub", f"Could not subscribe to pubsub topics: {e}", [e]) from e
        self.client = client
        logger.info(f"Twitch PubSub listening for {user_id}.")

    def _make_handler(self, name, normalizer, api, channel):
        async def handler(msg):
            try:
                event = normalizer(api, channel, msg)
                if asyncio.iscoroutine(event):
                    event = await event
            except Exception:
                logger.exception(f"Error normalizing pubsub {name} event")
                return
            self.relay.events.emit(event)
        handler.__name__ = f"on_{name}"
        return handler
