import asyncio
import logging
from aiohttp import web
from . import oauth
from .chat import ChatChannel
from .config import TwitchConfig
from .errors import AuthError, ChannelSetupError, ConfigError, PlatformLookupError, RelayError
from .events import EventBus, error_event
from .oauth import AuthSession, Identity
from .pubsub import NotificationChannel
from .storage import StorageFactory
from .twitchapi import TwitchApi
from .utils import closeBrowser, sleep
from .webhooks import WebhookChannel

logger = logging.getLogger(__name__)


class TwitchRelay:
    """
    Owns the broadcaster and bot sessions and the chat, pubsub and webhook
    channels built from them, and republishes every twitch event on `events`.

    The client factories are called with an AuthSession and return the
    platform library's ChatClient, PubSubClient and WebhookListener.
    """
    def __init__(self, config, chat_factory=None, pubsub_factory=None, webhook_factory=None, storage=None, events=None, api_factory=None):
        if isinstance(config, dict):
            config = TwitchConfig.from_dict(config)
        if not chat_factory or not pubsub_factory or not webhook_factory:
            raise ConfigError("Chat, pubsub and webhook client factories required!")
        self.config = config
        if isinstance(storage, str) or storage is None:
            storage = StorageFactory.create_storage(storage or 'json')
        self.storage = storage
        self.events = events or EventBus()
        self.api_factory = api_factory or TwitchApi
        self.sessions = {}
        self.api = None
        self.chat = ChatChannel(self, chat_factory)
        self.pubsub = NotificationChannel(self, pubsub_factory)
        self.webhooks = WebhookChannel(self, webhook_factory)
        self._chat_access_token = None
        self._chat_refresh_token = None
        self._refresh_task = None

    @property
    def chat_client(self):
        return self.chat.client

    @property
    def bot_chat_client(self):
        return self.chat.bot_client

    #============================================================================
    # Login ================================================================
    def get_redirect_url(self):
        return oauth.get_redirect_url(self.config)

    async def get_access_token(self, code):
        """ Exchanges the oauth code for broadcaster tokens and logs in """
        try:
            token = await oauth.exchange_code(self.config, code)
        except AuthError as e:
            logger.error(f"Getting twitch access token failed: {e}")
            self.events.emit(error_event("Error getting twitch access token.", e))
            raise
        await self.login({"accessToken": token["access_token"], "refreshToken": token["refresh_token"]})

    async def _fetch_chat_token(self):
        body = await oauth.refresh_chat_token(self.config, self._chat_refresh_token)
        self._chat_access_token = body["token"]
        self._chat_refresh_token = body.get("refresh") or self._chat_refresh_token
        logger.info("Got bot chat token.")

    async def _refresh_bot_token(self, session):
        body = await oauth.refresh_chat_token(self.config, session.refresh_token)
        return {"access_token": body["token"], "refresh_token": body.get("refresh")}

    async def login(self, tokens):
        """ Replaces both sessions, then sets up chat, pubsub and webhooks in that order """
        self._cancel_refresher()
        if not self._chat_access_token:
            try:
                await self._fetch_chat_token()
            except RelayError as e:
                # the bot session stays logged out, broadcaster channels still come up
                logger.error(f"Getting bot chat token failed: {e}")
                self.events.emit(error_event("Error getting twitch bot chat token.", e))
        self.sessions = {
            Identity.BROADCASTER: AuthSession(
                Identity.BROADCASTER,
                self.config.client_id,
                self.config.client_secret,
                access_token=tokens["accessToken"],
                refresh_token=tokens["refreshToken"],
                scopes=self.config.scopes,
                expiry=tokens.get("expiry"),
                on_refresh=self._save_tokens
            ),
            Identity.BOT: AuthSession(
                Identity.BOT,
                self.config.client_id,
                self.config.client_secret,
                access_token=self._chat_access_token,
                refresh_token=self._chat_refresh_token or self.config.chat_refresh_token,
                scopes=self.config.chat_scopes,
                on_refresh=self._on_bot_refresh,
                refresher=self._refresh_bot_token
            )
        }
        await self._save_tokens(self.sessions[Identity.BROADCASTER])
        self.api = self.api_factory(self.sessions[Identity.BROADCASTER], self.config.client_id, self.config.user_id)
        await self._setup_channels()
        if self.config.refresh_interval:
            self._refresh_task = asyncio.create_task(self._refresher())
        logger.warning("Logged in to Twitch!")

    async def login_from_storage(self):
        """ Logs in with the tokens saved by a previous login, returns False when there are none """
        access_token = await self.storage.get("accessToken")
        refresh_token = await self.storage.get("refreshToken")
        if not access_token or not refresh_token:
            logger.warning("No saved twitch tokens, oauth login required.")
            return False
        await self.login({"accessToken": access_token, "refreshToken": refresh_token})
        return True

    async def _save_tokens(self, session):
        try:
            await self.storage.set("accessToken", session.access_token)
            await self.storage.set("refreshToken", session.refresh_token)
        except Exception:
            logger.exception("Error saving twitch tokens")

    async def _on_bot_refresh(self, session):
        self._chat_access_token = session.access_token
        self._chat_refresh_token = session.refresh_token

    #============================================================================
    # Refresh ================================================================
    async def refresh_tokens(self):
        """ Refreshes both sessions, then sets every channel up again whether or not that worked """
        if not self.sessions:
            self.events.emit(error_event("Error refreshing twitch client tokens.", AuthError("Not logged in.")))
            return
        errors = []
        for session in self.sessions.values():
            try:
                await session.refresh()
            except AuthError as e:
                logger.error(f"{e}")
                errors.append(e)
        if errors:
            self.events.emit(error_event("Error refreshing twitch client tokens.", errors[0]))
        await self._setup_channels()

    async def _refresher(self):
        while True:
            await sleep(self.config.refresh_interval)
            try:
                await self.refresh_tokens()
            except Exception:
                logger.exception("Error in periodic twitch token refresh")

    def _cancel_refresher(self):
        if self._refresh_task:
            self._refresh_task.cancel()
            self._refresh_task = None

    async def is_ready(self):
        """ True when both sessions are logged in and can still refresh """
        sessions = [self.sessions.get(identity) for identity in Identity]
        if not all(s and s.access_token and s.refresh_token for s in sessions) or not self.api:
            return False
        try:
            for session in sessions:
                await session.refresh()
        except AuthError as e:
            logger.info(f"Twitch not ready: {e}")
            return False
        return True

    async def _setup_channels(self):
        for name, channel in (("chat", self.chat), ("pubsub", self.pubsub), ("webhooks", self.webhooks)):
            try:
                await channel.setup()
            except ChannelSetupError as e:
                logger.error(f"Error setting up twitch {name}: {e}")
                self.events.emit(error_event(f"Error setting up twitch {name}.", e))

    #============================================================================
    # Channel ================================================================
    async def set_stream_info(self, title, game):
        """ Sets the stream's title and game """
        game_id = None
        if game:
            info = await self.api.getGame(name=game)
            if not info:
                raise PlatformLookupError(f"Unknown game: {game}")
            game_id = info["id"]
        return await self.api.modifyChannelInfo(title=title, game_id=game_id)

    #============================================================================
    # Webserver ================================================================
    def setup_routes(self, server, login_path="/login"):
        """ Adds the oauth redirect and login routes to a WebServer """
        server.add_route(server.oauth_path, self._oauth_handler)
        server.add_route(login_path, self._login_handler)

    async def _oauth_handler(self, request):
        code = request.query.get('code')
        if not code:
            logger.error(f"No code provided in callback: {request.query.get('error')}")
            return web.Response(text="Error: No code provided", status=400)
        try:
            await self.get_access_token(code)
        except RelayError as e:
            return web.Response(text=f"Authorization failed: {e}", status=500)
        return web.Response(text=closeBrowser, content_type='text/html', charset='utf-8')

    async def _login_handler(self, request):
        raise web.HTTPFound(self.get_redirect_url())

    async def close(self):
        self._cancel_refresher()
        await self.chat.close()
        await self.webhooks.close()
        logger.warning("Twitch relay closed.")
