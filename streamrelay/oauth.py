import time
import asyncio
import logging
from enum import Enum
from urllib.parse import urlencode
import aiohttp
from .errors import AuthError, ConfigError

logger = logging.getLogger(__name__)

tokenEndpoint = "https://id.twitch.tv/oauth2/token"
oauthEndpoint = "https://id.twitch.tv/oauth2/authorize"


class Identity(Enum):
    BROADCASTER = "broadcaster"
    BOT = "bot"


async def token_request(data):
    """ Base token request, used for new or refreshing tokens """
    heads = {
        'Accept': 'application/json',
        'Content-Type': 'application/x-www-form-urlencoded'
        }
    try:
        async with aiohttp.ClientSession() as session:
            async with session.post(tokenEndpoint, headers=heads, data=data) as resp:
                if resp.status != 200:
                    raise AuthError(f"Token request failed: [{resp.status}] {await resp.text()}")
                return await resp.json()
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        raise AuthError(f"Token request failed: {e}") from e

async def exchange_code(config, code):
    """ Exchanges an oauth code for a broadcaster token """
    logger.warning("Getting new token from oauth code...")
    return await token_request({
        'client_id': config.client_id,
        'client_secret': config.client_secret,
        'code': code,
        'grant_type': 'authorization_code',
        'redirect_uri': config.redirect_uri
        })

async def refresh_chat_token(config, refresh_token=None):
    """ Gets a bot chat token from the configured chat token service, returns {'token', 'refresh'} """
    refresh_token = refresh_token or config.chat_refresh_token
    if not refresh_token:
        raise ConfigError("A chat refresh token is required for the bot account!")
    url = f"{config.chat_token_url.rstrip('/')}/{refresh_token}"
    try:
        async with aiohttp.ClientSession() as session:
            async with session.get(url) as resp:
                if resp.status != 200:
                    raise AuthError(f"Chat token request failed: [{resp.status}] {await resp.text()}")
                # the service answers with a text/html content type
                body = await resp.json(content_type=None)
    except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
        raise AuthError(f"Chat token request failed: {e}") from e
    if not body or not body.get("token"):
        raise AuthError(f"Chat token request failed: {body}")
    return body

def get_redirect_url(config):
    """ Generates the OAuth authorization URL """
    if not config.client_id or not config.redirect_uri:
        raise ConfigError("Client id and redirect uri required!")
    params = urlencode({
        'client_id': config.client_id,
        'redirect_uri': config.redirect_uri,
        'response_type': 'code',
        'scope': ' '.join(config.scopes)
    })
    return f"{oauthEndpoint}?{params}"


class AuthSession:
    """
    Holds one identity's access/refresh token pair.

    `refresh()` renews both tokens together through `refresher` (the oauth token
    endpoint by default). Failed refreshes raise AuthError and keep the old
    tokens; `on_refresh(session)` is awaited after every successful refresh.
    """
    def __init__(self, identity, client_id, client_secret, access_token=None, refresh_token=None, scopes=None, expiry=None, on_refresh=None, refresher=None):
        self.identity = identity
        self.client_id = client_id
        self.client_secret = client_secret
        self.access_token = access_token
        self.refresh_token = refresh_token
        self.scopes = list(scopes or [])
        self.expiry = expiry
        self.on_refresh = on_refresh
        self.refresher = refresher or self._refresh_request
        self._refresh_failed = False
        self._lock = asyncio.Lock()

    def __repr__(self):
        return f"AuthSession(identity={self.identity.value}, authenticated={self.is_authenticated()})"

    async def _refresh_request(self, session):
        return await token_request({
            'client_id': self.client_id,
            'client_secret': self.client_secret,
            'grant_type': 'refresh_token',
            'refresh_token': self.refresh_token
            })

    async def refresh(self):
        """ Silently renews the access token, raises AuthError on failure """
        async with self._lock:
            logger.info(f"Refreshing {self.identity.value} token...")
            if not self.refresh_token:
                self._refresh_failed = True
                raise AuthError(f"No refresh token for {self.identity.value}!")
            try:
                token = await self.refresher(self)
            except AuthError:
                self._refresh_failed = True
                raise
            except Exception as e:
                self._refresh_failed = True
                raise AuthError(f"Refreshing {self.identity.value} token failed: {e}") from e
            if not token or not token.get("access_token"):
                self._refresh_failed = True
                raise AuthError(f"Refreshing {self.identity.value} token failed: {token}")
            # both tokens are replaced together, keep the old refresh token if none is sent
            self.access_token, self.refresh_token = token["access_token"], token.get("refresh_token") or self.refresh_token
            if token.get("scope"):
                self.scopes = list(token["scope"])
            self.expiry = time.time() + int(token["expires_in"]) if token.get("expires_in") else None
            self._refresh_failed = False
            logger.warning(f"{self.identity.value} token refreshed.")
        if self.on_refresh:
            try:
                await self.on_refresh(self)
            except Exception:
                logger.exception(f"Error in {self.identity.value} on_refresh callback")
        return self

    def is_authenticated(self):
        return bool(self.access_token and self.refresh_token and self.scopes) and not self._refresh_failed

    def is_expired(self, margin=0):
        return self.expiry is not None and self.expiry <= time.time() + margin
