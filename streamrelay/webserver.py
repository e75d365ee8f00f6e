import logging
from urllib.parse import urlsplit
from aiohttp import web

logger = logging.getLogger(__name__)


class WebServer:
    """
    aiohttp app that receives the twitch oauth redirect.

    Use `WebServer.for_redirect_uri(config.redirect_uri)` so the server listens
    where twitch will send the browser; `oauth_path` is the path of that uri.
    """
    def __init__(self, host='localhost', port=3030, oauth_path='/oauth'):
        self.host = host
        self.port = port
        self.oauth_path = oauth_path
        self.app = web.Application()
        self._runner = None
        self._site = None

    @classmethod
    def for_redirect_uri(cls, redirect_uri):
        parts = urlsplit(redirect_uri)
        if not parts.hostname:
            raise ValueError(f"Redirect uri has no host: {redirect_uri}")
        port = parts.port or (443 if parts.scheme == 'https' else 80)
        return cls(parts.hostname, port, parts.path or '/')

    @property
    def running(self):
        return self._site is not None

    def add_route(self, path, handler, method='GET'):
        if self.running:
            # aiohttp freezes the router once the runner is set up
            raise RuntimeError(f"Can't add {method} {path}, server already running")
        self.app.router.add_route(method, path, handler)
        logger.debug(f"Route added: {method} {path}")

    async def start(self):
        if self.running:
            return
        self._runner = web.AppRunner(self.app)
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, self.host, self.port)
        await self._site.start()
        logger.warning(f"Oauth server listening on http://{self.host}:{self.port}{self.oauth_path}")

    async def stop(self):
        if self._runner:
            await self._runner.cleanup()
        self._site = self._runner = None
        logger.info("Oauth server stopped")

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, *exc):
        await self.stop()
