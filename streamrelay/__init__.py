from .twitch import TwitchRelay
from .config import TwitchConfig, ReconnectConfig
from .events import EventBus, NormalizedEvent
from .oauth import AuthSession, Identity
from .chat import ChatChannel, ChatState
from .pubsub import NotificationChannel
from .webhooks import WebhookChannel
from .twitchapi import TwitchApi
from .storage import StorageFactory
from .webserver import WebServer
from .errors import RelayError, AuthError, ChannelSetupError, PlatformLookupError, ConfigError
