"""
Boundary with the Twitch client libraries.

The chat, pubsub and webhook wire protocols live in those libraries. They
hand already-parsed payloads to the handlers registered here, using the
dataclasses below, and build their clients from an `AuthSession` through the
factories given to `TwitchRelay`.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class ChatKind(Enum):
    """ Chat callback kinds, handlers are called as `handler(channel, user, info)` """
    ACTION = "action"
    COMMUNITY_PAY_FORWARD = "community_pay_forward"
    COMMUNITY_SUB = "community_sub"
    GIFT_PAID_UPGRADE = "gift_paid_upgrade"
    HOST = "host"
    HOSTED = "hosted"
    MESSAGE = "message"
    PRIME_COMMUNITY_GIFT = "prime_community_gift"
    PRIME_PAID_UPGRADE = "prime_paid_upgrade"
    RAID = "raid"
    RESUB = "resub"
    RITUAL = "ritual"
    STANDARD_PAY_FORWARD = "standard_pay_forward"
    SUB = "sub"
    SUB_EXTEND = "sub_extend"
    SUB_GIFT = "sub_gift"
    WHISPER = "whisper"


#============================================================================
# Chat payloads ================================================================
@dataclass(frozen=True)
class ChatUser:
    user_name: str
    display_name: str
    user_id: Optional[str] = None


@dataclass(frozen=True)
class ChatMessage:
    """ message, action and whisper """
    text: str
    user_info: ChatUser


@dataclass(frozen=True)
class SubInfo:
    """ sub, resub and sub gift """
    display_name: str
    plan: str
    is_prime: bool = False
    message: Optional[str] = None
    months: Optional[int] = None
    streak: Optional[int] = None
    gifter: Optional[str] = None
    gifter_display_name: Optional[str] = None
    gifter_gift_count: Optional[int] = None


@dataclass(frozen=True)
class CommunitySubInfo:
    gifter_display_name: str
    count: int
    plan: str
    gifter: Optional[str] = None
    gifter_gift_count: Optional[int] = None


@dataclass(frozen=True)
class CommunityPayForwardInfo:
    display_name: str
    original_gifter_display_name: Optional[str] = None


@dataclass(frozen=True)
class StandardPayForwardInfo:
    display_name: str
    recipient_display_name: str
    original_gifter_display_name: Optional[str] = None


@dataclass(frozen=True)
class GiftPaidUpgradeInfo:
    display_name: str
    gifter_display_name: str
    plan: str


@dataclass(frozen=True)
class PrimePaidUpgradeInfo:
    display_name: str
    plan: str


@dataclass(frozen=True)
class PrimeCommunityGiftInfo:
    gifter: str
    gifter_display_name: str
    name: str


@dataclass(frozen=True)
class RaidInfo:
    display_name: str
    viewer_count: int


@dataclass(frozen=True)
class RitualInfo:
    ritual_name: str
    user_info: ChatUser
    message: Optional[str] = None


@dataclass(frozen=True)
class SubExtendInfo:
    display_name: str
    months: int
    plan: str


@dataclass(frozen=True)
class HostInfo:
    """ the broadcaster hosts `target` """
    target: str
    viewers: Optional[int] = None


@dataclass(frozen=True)
class HostedInfo:
    """ the broadcaster is hosted by `by_channel` """
    by_channel: str
    auto: bool = False
    viewers: Optional[int] = None


#============================================================================
# PubSub payloads ================================================================
@dataclass(frozen=True)
class BitsMessage:
    bits: int
    user_id: Optional[str] = None
    user_name: Optional[str] = None
    total_bits: Optional[int] = None
    message: Optional[str] = None
    is_anonymous: bool = False


@dataclass(frozen=True)
class RedemptionMessage:
    user_id: str
    user_name: str
    user_display_name: str
    reward_name: str
    reward_cost: int
    redemption_date: Optional[datetime | str] = None
    message: Optional[str] = None
    reward_is_queued: bool = False


#============================================================================
# Webhook payloads ================================================================
@dataclass(frozen=True)
class FollowEvent:
    user_id: str
    user_display_name: str
    follow_date: Optional[datetime | str] = None


@dataclass(frozen=True)
class StreamEvent:
    id: str
    title: str
    game_id: Optional[str] = None
    start_date: Optional[datetime | str] = None
    thumbnail_url: Optional[str] = None


#============================================================================
# Clients ================================================================
class ChatClient(ABC):
    @abstractmethod
    def on(self, kind: ChatKind, handler):
        """ Registers `handler(channel, user, info)` for a chat callback kind """

    @abstractmethod
    def on_disconnect(self, handler):
        """ Registers `handler(manually, reason)` """

    @abstractmethod
    async def connect(self):
        pass

    @abstractmethod
    async def quit(self):
        pass


class PubSubClient(ABC):
    @abstractmethod
    async def listen(self):
        """ Registers the broadcaster's credentials with the pubsub connection """

    @abstractmethod
    async def on_bits(self, user_id, handler):
        pass

    @abstractmethod
    async def on_redemption(self, user_id, handler):
        pass


class Subscription(ABC):
    @abstractmethod
    async def stop(self):
        pass


class WebhookListener(ABC):
    @abstractmethod
    async def listen(self):
        """ Binds the listener's callback endpoint """

    @abstractmethod
    async def subscribe_to_follows_to_user(self, user_id, handler) -> Subscription:
        pass

    @abstractmethod
    async def subscribe_to_stream_changes(self, user_id, handler) -> Subscription:
        """ `handler(stream)` gets a StreamEvent, or None when the stream goes offline """
