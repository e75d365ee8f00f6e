import time
import logging
import aiohttp
from .errors import AuthError
from .utils import sleep

logger = logging.getLogger(__name__)

# refresh tokens that expire within this many seconds before using them
expiryMargin = 60


class RequestHandler:
    """ Helix requests bound to one AuthSession """
    def __init__(self, session, client_id=None):
        self.session = session
        self.client_id = client_id or session.client_id

    def _headers(self):
        """Generates headers for API requests."""
        return {
            'Client-ID': self.client_id,
            'Content-Type': 'application/json',
            'Authorization': f'Bearer {self.session.access_token}'
        }

    async def _request(self, method, url, *args, _retry=True, **kwargs):
        """Handles API requests, refreshes once on expired tokens and waits out rate limits."""
        if _retry and self.session.is_expired(expiryMargin):
            await self.session.refresh()
        kwargs['headers'] = self._headers()
        async with aiohttp.ClientSession() as session:
            async with session.request(method, url, *args, **kwargs) as response:
                logger.debug(f"[{method}] {url} {kwargs.get('params')} [{response.status}]")
                match response.status:
                    case 401 if _retry:
                        logger.error("Token expired, refreshing...")
                        await self.session.refresh()
                        return await self._request(method, url, *args, _retry=False, **kwargs)
                    case 401:
                        raise AuthError(f"[{method}] {url} still unauthorized after refresh")
                    case 429:
                        ratelimit_reset = int(response.headers.get('Ratelimit-Reset', time.time() + 1))
                        wait_time = max(ratelimit_reset - int(time.time()), 0) + 1
                        logger.warning(f"Rate limited! {wait_time = }")
                        await sleep(wait_time)
                        return await self._request(method, url, *args, _retry=_retry, **kwargs)
                response.raise_for_status()
                if response.status == 204:
                    return None
                return await response.json()
