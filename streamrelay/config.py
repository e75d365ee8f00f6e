import logging
from dataclasses import dataclass, field, fields
from .errors import ConfigError
from .utils import loadJSON

logger = logging.getLogger(__name__)

# original camelCase setting names -> field names
_aliases = {
    "clientId": "client_id",
    "clientSecret": "client_secret",
    "redirectUri": "redirect_uri",
    "chatScopes": "chat_scopes",
    "chatRefreshToken": "chat_refresh_token",
    "chatTokenUrl": "chat_token_url",
    "userId": "user_id",
    "refreshInterval": "refresh_interval",
    "webhookSettleDelay": "webhook_settle_delay",
}


@dataclass
class ReconnectConfig:
    """ Backoff applied between chat re-setups after unexpected disconnects """
    base_delay: float = 1.0
    max_delay: float = 60.0
    # a connection that stayed up this long resets the backoff
    stable_after: float = 60.0

    def delay(self, attempt):
        """ Delay before re-setup number `attempt` (0 based), the first one is immediate """
        if attempt <= 0:
            return 0
        return min(self.base_delay * 2 ** (attempt - 1), self.max_delay)


@dataclass
class TwitchConfig:
    client_id: str = None
    client_secret: str = None
    redirect_uri: str = "http://localhost:3030/oauth"
    scopes: list = field(default_factory=list)
    chat_scopes: list = field(default_factory=list)
    chat_refresh_token: str = None
    chat_token_url: str = "https://twitchtokengenerator.com/api/refresh/"
    user_id: str = None
    refresh_interval: float = None
    webhook_settle_delay: float = 1.0
    reconnect: ReconnectConfig = field(default_factory=ReconnectConfig)

    def __post_init__(self):
        if not self.client_id or not self.client_secret:
            raise ConfigError("Client id and secret required!")
        if isinstance(self.reconnect, dict):
            self.reconnect = ReconnectConfig(**self.reconnect)
        if self.user_id is not None:
            self.user_id = str(self.user_id)

    def __repr__(self):
        return f"TwitchConfig(client_id={self.client_id!r}, redirect_uri={self.redirect_uri!r}, user_id={self.user_id!r})"

    @classmethod
    def from_dict(cls, data):
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in data.items():
            name = _aliases.get(key, key)
            if name not in known:
                logger.warning(f"Ignoring unknown twitch setting: {key}")
                continue
            kwargs[name] = value
        return cls(**kwargs)

    @classmethod
    def from_file(cls, filename, section="twitch"):
        """ Loads settings from a json file, using `section` when the file has one """
        data = loadJSON(filename)
        if section and section in data:
            data = data[section]
        return cls.from_dict(data)
