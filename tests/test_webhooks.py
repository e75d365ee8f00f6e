import asyncio

import pytest

from streamrelay.errors import ChannelSetupError, PlatformLookupError
from streamrelay.platform import FollowEvent, StreamEvent


@pytest.mark.asyncio
async def test_setup_twice_keeps_one_generation(relay, platform):
    await relay.login({"accessToken": "A", "refreshToken": "B"})
    first = list(relay.webhooks.subscriptions)
    await relay.webhooks.setup()
    assert len(platform.live_subscriptions()) == 2
    assert all(not s.live for s in first)
    assert relay.webhooks.subscriptions == platform.listeners[-1].subscriptions
    assert [s.topic for s in relay.webhooks.subscriptions] == ["follow", "stream"]


@pytest.mark.asyncio
async def test_previous_subscriptions_stop_before_new_listener(relay, platform):
    await relay.login({"accessToken": "A", "refreshToken": "B"})
    platform.calls.clear()
    await relay.webhooks.setup()
    names = [c[0] for c in platform.calls]
    assert names[:3] == ["webhooks.stop", "webhooks.stop", "webhooks.create"]


@pytest.mark.asyncio
async def test_failed_subscription_leaves_no_partial_set(relay, platform):
    await relay.login({"accessToken": "A", "refreshToken": "B"})
    platform.webhook_fail_topics = ("stream",)
    with pytest.raises(ChannelSetupError):
        await relay.webhooks.setup()
    assert platform.live_subscriptions() == []
    assert relay.webhooks.subscriptions == []


@pytest.mark.asyncio
async def test_settle_delay(relay, monkeypatch):
    waited = []

    async def fake_sleep(seconds):
        waited.append(seconds)

    monkeypatch.setattr("streamrelay.webhooks.sleep", fake_sleep)
    relay.webhooks.settle_delay = 1.0
    await relay.login({"accessToken": "A", "refreshToken": "B"})
    assert waited == [1.0]


@pytest.mark.asyncio
async def test_follow_is_published(relay, platform, published):
    await relay.login({"accessToken": "A", "refreshToken": "B"})
    await platform.listeners[-1].handlers["follow"](FollowEvent("1234", "Cool_User", "2024-05-01T12:00:00Z"))
    assert [e.name for e in published] == ["follow"]
    assert published[0]["user"] == "cool_user"
    assert published[0].channel == "1337"


@pytest.mark.asyncio
async def test_follow_lookup_failure_still_publishes_once(relay, platform, published, api):
    api.getUser.side_effect = PlatformLookupError("helix down")
    await relay.login({"accessToken": "A", "refreshToken": "B"})
    await platform.listeners[-1].handlers["follow"](FollowEvent("1234", "Cool_User"))
    assert len(published) == 1
    assert published[0]["user"] == "Cool_User"


@pytest.mark.asyncio
async def test_stream_and_offline(relay, platform, published):
    await relay.login({"accessToken": "A", "refreshToken": "B"})
    handler = platform.listeners[-1].handlers["stream"]
    await handler(StreamEvent("40", "Chill", "509658"))
    await handler(None)
    assert [e.name for e in published] == ["stream", "offline"]
    assert published[0]["game"] == "Just Chatting"


@pytest.mark.asyncio
async def test_close_stops_everything(relay, platform):
    await relay.login({"accessToken": "A", "refreshToken": "B"})
    await relay.close()
    assert platform.live_subscriptions() == []


@pytest.mark.asyncio
async def test_concurrent_setups_keep_one_generation(relay, platform):
    await relay.login({"accessToken": "A", "refreshToken": "B"})
    await asyncio.gather(relay.webhooks.setup(), relay.webhooks.setup())
    assert platform.live_subscriptions() == relay.webhooks.subscriptions
    assert len(relay.webhooks.subscriptions) == 2
