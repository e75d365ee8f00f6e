import time
import asyncio
import logging
from enum import Enum
from functools import partial
from .errors import ChannelSetupError
from .normalize import CHAT_NORMALIZERS, normalize_chat
from .oauth import Identity
from .utils import sleep

logger = logging.getLogger(__name__)


class ChatState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


class ChatChannel:
    """
    Broadcaster and bot chat connections, handled as one unit.

    An unexpected disconnect of either connection re-runs `setup()` for both.
    Chat callbacks are only registered on the broadcaster connection, the bot
    connection is kept for outbound chat.
    """
    def __init__(self, relay, factory, reconnect=None):
        self.relay = relay
        self.factory = factory
        self.reconnect = reconnect or relay.config.reconnect
        self.clients = {}
        self.state = {identity: ChatState.DISCONNECTED for identity in Identity}
        self._attempts = 0
        self._last_setup = None
        self._reconnecting = False
        self._pending = False
        self._lock = asyncio.Lock()

    @property
    def client(self):
        return self.clients.get(Identity.BROADCASTER)

    @property
    def bot_client(self):
        return self.clients.get(Identity.BOT)

    async def _quit(self, identity):
        client = self.clients.pop(identity, None)
        if not client:
            return
        try:
            await client.quit()
        except Exception as e:
            # the old handle is discarded either way
            logger.debug(f"Ignoring error quitting {identity.value} chat: {e}")

    async def setup(self):
        """ Replaces both chat connections with new ones built from the current sessions """
        try:
            async with self._lock:
                self._pending = False
                await self._setup()
        finally:
            # a new handle dropped while this setup was connecting
            if self._pending and not self._reconnecting:
                await self._reconnect()

    async def _setup(self):
        for identity in Identity:
            await self._quit(identity)
        api = self.relay.api
        try:
            for identity in Identity:
                self.clients[identity] = self.factory(self.relay.sessions[identity])
        except Exception as e:
            self.clients.clear()
            raise ChannelSetupError("chat", f"Could not create chat clients: {e}", [e]) from e
        broadcaster = self.clients[Identity.BROADCASTER]
        for kind in CHAT_NORMALIZERS:
            broadcaster.on(kind, self._make_handler(kind, api))
        for identity, client in self.clients.items():
            client.on_disconnect(partial(self._on_disconnect, identity, client))
            self.state[identity] = ChatState.CONNECTING
        clients = list(self.clients.items())
        results = await asyncio.gather(*(client.connect() for _, client in clients), return_exceptions=True)
        self._last_setup = time.monotonic()
        errors = []
        for (identity, client), result in zip(clients, results):
            if isinstance(result, Exception):
                logger.error(f"The {identity.value}'s Twitch chat failed to connect: {result}")
                self.state[identity] = ChatState.DISCONNECTED
                errors.append(result)
            elif self.state[identity] is ChatState.CONNECTING:
                self.state[identity] = ChatState.CONNECTED
        if errors:
            raise ChannelSetupError("chat", f"{len(errors)} chat connection(s) failed", errors)
        logger.info("Twitch chat connected.")

    def _make_handler(self, kind, api):
        async def handler(channel, user, info):
            try:
                event = await normalize_chat(kind, api, channel, user, info)
            except Exception:
                logger.exception(f"Error normalizing chat {kind.value} event")
                return
            self.relay.events.emit(event)
        handler.__name__ = f"on_{kind.value}"
        return handler

    def _next_delay(self):
        now = time.monotonic()
        if self._last_setup is not None and now - self._last_setup >= self.reconnect.stable_after:
            self._attempts = 0
        delay = self.reconnect.delay(self._attempts)
        self._attempts += 1
        return delay

    async def _on_disconnect(self, identity, client, manually, reason=None):
        if reason:
            logger.error(f"The {identity.value}'s Twitch chat disconnected: {reason}",
                exc_info=reason if isinstance(reason, BaseException) else None)
        if self.clients.get(identity) is not client:
            # a handle replaced by a newer setup
            return
        self.state[identity] = ChatState.DISCONNECTED
        if manually:
            return
        if self._reconnecting or self._lock.locked():
            # picked up once the running setup is done
            self._pending = True
            return
        await self._reconnect()

    async def _reconnect(self):
        """ Sets both connections up again until one setup finishes without a new disconnect """
        self._reconnecting = True
        try:
            while True:
                for key in self.state:
                    self.state[key] = ChatState.RECONNECTING
                delay = self._next_delay()
                if delay:
                    logger.warning(f"Reconnecting Twitch chat in {delay}s...")
                await sleep(delay)
                try:
                    async with self._lock:
                        self._pending = False
                        await self._setup()
                except ChannelSetupError as e:
                    # retried on the next disconnect signal
                    logger.error(f"Reconnecting Twitch chat failed: {e}")
                except Exception:
                    logger.exception("Unexpected error reconnecting Twitch chat")
                if not self._pending:
                    break
        finally:
            self._reconnecting = False

    async def close(self):
        async with self._lock:
            for identity in Identity:
                await self._quit(identity)
                self.state[identity] = ChatState.DISCONNECTED
