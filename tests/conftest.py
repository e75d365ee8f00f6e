"""
Shared fixtures: fake platform clients that record what the relay does with
them, a fake Helix api, and a relay wired to both.
"""
import asyncio
from unittest.mock import AsyncMock

import pytest

from streamrelay import TwitchConfig, TwitchRelay, EventBus
from streamrelay.platform import ChatClient, PubSubClient, Subscription, WebhookListener
from streamrelay.storage import MemoryStorage


class FakeChatClient(ChatClient):
    def __init__(self, session, calls):
        self.session = session
        self.calls = calls
        self.handlers = {}
        self.disconnect_handlers = []
        self.connected = False
        self.quit_error = None
        self.connect_error = None
        # reason for a disconnect reported from inside connect()
        self.drop_on_connect = None

    def on(self, kind, handler):
        self.handlers[kind] = handler

    def on_disconnect(self, handler):
        self.disconnect_handlers.append(handler)

    async def connect(self):
        self.calls.append(("chat.connect", self.session.identity))
        await asyncio.sleep(0)
        if self.connect_error:
            raise self.connect_error
        self.connected = True
        if self.drop_on_connect:
            reason, self.drop_on_connect = self.drop_on_connect, None
            self.connected = False
            await self.fire_disconnect(False, reason)

    async def quit(self):
        self.calls.append(("chat.quit", self.session.identity))
        self.connected = False
        await asyncio.sleep(0)
        if self.quit_error:
            raise self.quit_error

    async def fire(self, kind, channel, user, info):
        await self.handlers[kind](channel, user, info)

    async def fire_disconnect(self, manually, reason=None):
        for handler in self.disconnect_handlers:
            await handler(manually, reason)


class FakePubSubClient(PubSubClient):
    def __init__(self, session, calls):
        self.session = session
        self.calls = calls
        self.handlers = {}

    async def listen(self):
        self.calls.append(("pubsub.listen", self.session.identity))

    async def on_bits(self, user_id, handler):
        self.handlers["bits"] = handler

    async def on_redemption(self, user_id, handler):
        self.handlers["redemption"] = handler


class FakeSubscription(Subscription):
    def __init__(self, topic, calls):
        self.topic = topic
        self.calls = calls
        self.live = True

    async def stop(self):
        self.calls.append(("webhooks.stop", self.topic))
        self.live = False
        await asyncio.sleep(0)


class FakeWebhookListener(WebhookListener):
    def __init__(self, session, calls, fail_topics=()):
        self.session = session
        self.calls = calls
        self.fail_topics = fail_topics
        self.handlers = {}
        self.subscriptions = []

    async def listen(self):
        self.calls.append(("webhooks.listen", self.session.identity))
        await asyncio.sleep(0)

    async def _subscribe(self, topic, handler):
        if topic in self.fail_topics:
            raise RuntimeError(f"{topic} subscription refused")
        self.handlers[topic] = handler
        sub = FakeSubscription(topic, self.calls)
        self.subscriptions.append(sub)
        return sub

    async def subscribe_to_follows_to_user(self, user_id, handler):
        return await self._subscribe("follow", handler)

    async def subscribe_to_stream_changes(self, user_id, handler):
        return await self._subscribe("stream", handler)


class Platform:
    """ Factories handed to the relay, keeps every client they built """
    def __init__(self):
        self.calls = []
        self.chat_clients = []
        self.pubsub_clients = []
        self.listeners = []
        self.webhook_fail_topics = ()

    def chat_factory(self, session):
        self.calls.append(("chat.create", session.identity))
        client = FakeChatClient(session, self.calls)
        self.chat_clients.append(client)
        return client

    def pubsub_factory(self, session):
        self.calls.append(("pubsub.create", session.identity))
        client = FakePubSubClient(session, self.calls)
        self.pubsub_clients.append(client)
        return client

    def webhook_factory(self, session):
        self.calls.append(("webhooks.create", session.identity))
        listener = FakeWebhookListener(session, self.calls, self.webhook_fail_topics)
        self.listeners.append(listener)
        return listener

    def live_subscriptions(self):
        return [s for l in self.listeners for s in l.subscriptions if s.live]


EVENT_NAMES = (
    "action", "message", "whisper", "sub", "resub", "subGift", "subGiftCommunity",
    "subGiftCommunityPayForward", "subGiftPayForward", "subGiftUpgrade", "subPrimeUpgraded",
    "subExtend", "giftPrime", "raided", "ritual", "host", "hosted", "bits", "redemption",
    "follow", "stream", "offline", "error"
)


@pytest.fixture
def config():
    return TwitchConfig(
        client_id="client-id",
        client_secret="client-secret",
        scopes=["bits:read", "channel:read:redemptions"],
        chat_scopes=["chat:read", "chat:edit"],
        chat_refresh_token="chat-refresh",
        user_id="1337",
        webhook_settle_delay=0
    )


@pytest.fixture
def api():
    api = AsyncMock()
    api.getUser.return_value = {"id": "1234", "login": "cool_user", "display_name": "Cool_User"}
    api.searchChannels.return_value = [{"broadcaster_login": "cool_user", "display_name": "Cool_User"}]
    api.getGame.return_value = {"id": "509658", "name": "Just Chatting"}
    return api


@pytest.fixture
def platform():
    return Platform()


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def chat_token(monkeypatch):
    mock = AsyncMock(return_value={"success": True, "token": "chat-token", "refresh": "chat-refresh"})
    monkeypatch.setattr("streamrelay.oauth.refresh_chat_token", mock)
    return mock


@pytest.fixture
def relay(config, platform, bus, api, chat_token):
    return TwitchRelay(
        config,
        chat_factory=platform.chat_factory,
        pubsub_factory=platform.pubsub_factory,
        webhook_factory=platform.webhook_factory,
        storage=MemoryStorage(),
        events=bus,
        api_factory=lambda session, client_id, user_id: api
    )


@pytest.fixture
def published(bus):
    """ Every event published on the bus, in order """
    out = []
    for name in EVENT_NAMES:
        bus.on(name, out.append)
    return out
