"""
Normalization of platform payloads into NormalizedEvents.

Chat normalizers are called as `fn(api, channel, user, info)`; the ones that
need a secondary Helix lookup are coroutines and fall back to the name the
platform already gave when the lookup fails.
"""
import inspect
import logging
from .errors import PlatformLookupError
from .events import NormalizedEvent
from .platform import ChatKind
from .utils import parse_date

logger = logging.getLogger(__name__)

ANONYMOUS = "Anonymous"


def strip_channel(channel):
    """ '#name' -> 'name' """
    if channel and channel[0] == "#":
        return channel[1:]
    return channel or ""

#============================================================================
# Lookups ================================================================
async def resolve_channel_login(api, display_name):
    """ Finds the login of the channel with `display_name`, falls back to `display_name` """
    try:
        channels = await api.searchChannels(display_name)
    except PlatformLookupError as e:
        logger.warning(f"Channel lookup for {display_name} failed: {e}")
        return display_name
    found = next((c for c in channels if c.get("display_name") == display_name), None)
    return found["broadcaster_login"] if found else display_name

async def resolve_user(api, user_id, field, fallback):
    """ Returns `field` of the user with `user_id`, falls back to `fallback` """
    if not user_id:
        return fallback
    try:
        user = await api.getUser(user_id=user_id)
    except PlatformLookupError as e:
        logger.warning(f"User lookup for {user_id} failed: {e}")
        return fallback
    return user[field] if user and user.get(field) else fallback

async def resolve_game_name(api, game_id):
    if not game_id:
        return ""
    try:
        game = await api.getGame(game_id=game_id)
    except PlatformLookupError as e:
        logger.warning(f"Game lookup for {game_id} failed: {e}")
        return ""
    return game["name"] if game else ""

#============================================================================
# Chat ================================================================
def action(api, channel, user, msg):
    return NormalizedEvent("action", strip_channel(channel), {
        "user": user,
        "name": msg.user_info.display_name,
        "message": msg.text
    })

def message(api, channel, user, msg):
    return NormalizedEvent("message", strip_channel(channel), {
        "user": user,
        "name": msg.user_info.display_name,
        "message": msg.text
    })

def whisper(api, channel, user, msg):
    return NormalizedEvent("whisper", strip_channel(channel), {
        "user": user,
        "name": msg.user_info.display_name,
        "message": msg.text
    })

def sub(api, channel, user, info):
    return NormalizedEvent("sub", strip_channel(channel), _sub_payload(user, info))

def resub(api, channel, user, info):
    return NormalizedEvent("resub", strip_channel(channel), _sub_payload(user, info))

def _sub_payload(user, info):
    return {
        "user": user,
        "name": info.display_name,
        "isPrime": info.is_prime,
        "message": info.message,
        "months": info.months,
        "streak": info.streak,
        "tier": info.plan
    }

def sub_gift(api, channel, user, info):
    return NormalizedEvent("subGift", strip_channel(channel), {
        "user": user,
        "name": info.display_name,
        "gifterUser": info.gifter,
        "gifterName": info.gifter_display_name,
        "totalGiftCount": info.gifter_gift_count,
        "isPrime": info.is_prime,
        "message": info.message,
        "months": info.months,
        "streak": info.streak,
        "tier": info.plan
    })

def sub_gift_community(api, channel, user, info):
    return NormalizedEvent("subGiftCommunity", strip_channel(channel), {
        "user": user,
        "name": info.gifter_display_name,
        "giftCount": info.count,
        "totalGiftCount": info.gifter_gift_count,
        "tier": info.plan
    })

def sub_gift_community_pay_forward(api, channel, user, info):
    return NormalizedEvent("subGiftCommunityPayForward", strip_channel(channel), {
        "user": user,
        "name": info.display_name,
        "originalGifter": info.original_gifter_display_name
    })

def sub_gift_pay_forward(api, channel, user, info):
    return NormalizedEvent("subGiftPayForward", strip_channel(channel), {
        "user": user,
        "name": info.display_name,
        "originalGifter": info.original_gifter_display_name,
        "recipient": info.recipient_display_name
    })

def sub_gift_upgrade(api, channel, user, info):
    return NormalizedEvent("subGiftUpgrade", strip_channel(channel), {
        "user": user,
        "name": info.display_name,
        "gifter": info.gifter_display_name,
        "tier": info.plan
    })

def sub_prime_upgraded(api, channel, user, info):
    return NormalizedEvent("subPrimeUpgraded", strip_channel(channel), {
        "user": user,
        "name": info.display_name,
        "tier": info.plan
    })

def sub_extend(api, channel, user, info):
    return NormalizedEvent("subExtend", strip_channel(channel), {
        "user": user,
        "name": info.display_name,
        "months": info.months,
        "tier": info.plan
    })

def gift_prime(api, channel, user, info):
    # the gifter is the interesting user here, not the recipient
    return NormalizedEvent("giftPrime", strip_channel(channel), {
        "user": info.gifter,
        "name": info.gifter_display_name,
        "gift": info.name
    })

def raided(api, channel, user, info):
    return NormalizedEvent("raided", strip_channel(channel), {
        "user": user,
        "name": info.display_name,
        "viewerCount": info.viewer_count
    })

def ritual(api, channel, user, info):
    return NormalizedEvent("ritual", strip_channel(channel), {
        "user": user,
        "name": info.user_info.display_name,
        "message": info.message,
        "ritual": info.ritual_name
    })

async def host(api, channel, user, info):
    return NormalizedEvent("host", strip_channel(channel), {
        "user": await resolve_channel_login(api, info.target),
        "name": info.target,
        "viewerCount": info.viewers
    })

async def hosted(api, channel, user, info):
    by_channel = strip_channel(info.by_channel)
    return NormalizedEvent("hosted", strip_channel(channel), {
        "user": await resolve_channel_login(api, by_channel),
        "name": by_channel,
        "auto": info.auto,
        "viewerCount": info.viewers
    })

CHAT_NORMALIZERS = {
    ChatKind.ACTION: action,
    ChatKind.COMMUNITY_PAY_FORWARD: sub_gift_community_pay_forward,
    ChatKind.COMMUNITY_SUB: sub_gift_community,
    ChatKind.GIFT_PAID_UPGRADE: sub_gift_upgrade,
    ChatKind.HOST: host,
    ChatKind.HOSTED: hosted,
    ChatKind.MESSAGE: message,
    ChatKind.PRIME_COMMUNITY_GIFT: gift_prime,
    ChatKind.PRIME_PAID_UPGRADE: sub_prime_upgraded,
    ChatKind.RAID: raided,
    ChatKind.RESUB: resub,
    ChatKind.RITUAL: ritual,
    ChatKind.STANDARD_PAY_FORWARD: sub_gift_pay_forward,
    ChatKind.SUB: sub,
    ChatKind.SUB_EXTEND: sub_extend,
    ChatKind.SUB_GIFT: sub_gift,
    ChatKind.WHISPER: whisper,
}

async def normalize_chat(kind, api, channel, user, info):
    """ Runs the normalizer registered for `kind`, awaiting it when it is a coroutine """
    event = CHAT_NORMALIZERS[kind](api, channel, user, info)
    if inspect.isawaitable(event):
        event = await event
    return event

#============================================================================
# PubSub ================================================================
async def bits(api, channel, msg):
    if msg.is_anonymous:
        user_id, user, name, total_bits = None, ANONYMOUS, ANONYMOUS, None
    else:
        user_id, user, total_bits = msg.user_id, msg.user_name, msg.total_bits
        name = await resolve_user(api, msg.user_id, "display_name", msg.user_name)
    return NormalizedEvent("bits", strip_channel(channel), {
        "userId": user_id,
        "user": user,
        "name": name,
        "bits": msg.bits,
        "totalBits": total_bits,
        "message": msg.message,
        "isAnonymous": msg.is_anonymous
    })

def redemption(api, channel, msg):
    return NormalizedEvent("redemption", strip_channel(channel), {
        "userId": msg.user_id,
        "user": msg.user_name,
        "name": msg.user_display_name,
        "message": msg.message or None,
        "date": parse_date(msg.redemption_date),
        "cost": int(msg.reward_cost),
        "reward": msg.reward_name,
        "isQueued": msg.reward_is_queued
    })

#============================================================================
# Webhooks ================================================================
async def follow(api, channel, event):
    return NormalizedEvent("follow", strip_channel(channel), {
        "userId": event.user_id,
        "user": await resolve_user(api, event.user_id, "login", event.user_display_name),
        "name": event.user_display_name,
        "date": parse_date(event.follow_date)
    })

async def stream(api, channel, event):
    """ `event` is None when the broadcaster went offline """
    if event is None:
        return NormalizedEvent("offline", strip_channel(channel))
    return NormalizedEvent("stream", strip_channel(channel), {
        "title": event.title,
        "game": await resolve_game_name(api, event.game_id),
        "id": event.id,
        "startDate": parse_date(event.start_date),
        "thumbnailUrl": event.thumbnail_url
    })
