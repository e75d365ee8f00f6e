import json
import asyncio
import logging
import aiohttp
from .http import RequestHandler
from .errors import AuthError, PlatformLookupError

logger = logging.getLogger(__name__)

apiUrlPrefix = "https://api.twitch.tv/helix"
apiEndpoints = {
    "user": f"{apiUrlPrefix}/users",
    "search_channels": f"{apiUrlPrefix}/search/channels",
    "categories": f"{apiUrlPrefix}/games",
    "broadcast": f"{apiUrlPrefix}/channels",
}

# failures a lookup turns into PlatformLookupError
_lookupErrors = (aiohttp.ClientError, asyncio.TimeoutError, AuthError, KeyError, ValueError)


class TwitchApi(RequestHandler):
    def __init__(self, session, client_id=None, user_id=None):
        super().__init__(session, client_id)
        self.user_id = user_id

    async def _lookup(self, what, url, params):
        try:
            r = await self._request("get", url, params=params)
            return r['data']
        except _lookupErrors as e:
            raise PlatformLookupError(f"{what} lookup failed ({params}): {e}") from e

    #============================================================================
    # User Methods ================================================================
    async def getUser(self, user_id=None, login=None):
        """ Get a single user by id or login, None when twitch knows no such user """
        params = {"id": str(user_id)} if user_id else {"login": login}
        r = await self._lookup("user", apiEndpoints['user'], params)
        return r[0] if r else None

    async def searchChannels(self, query, first=None):
        """ Search channels by name """
        params = {"query": query}
        if first:
            params["first"] = first
        return await self._lookup("channel search", apiEndpoints['search_channels'], params)

    #============================================================================
    # Category Methods ================================================================
    async def getGame(self, game_id=None, name=None):
        """ Get a single game/category by id or name """
        params = {"id": str(game_id)} if game_id else {"name": name}
        r = await self._lookup("game", apiEndpoints['categories'], params)
        return r[0] if r else None

    #============================================================================
    # Channel Methods ================================================================
    async def modifyChannelInfo(self, broadcaster_id=None, title=None, game_id=None):
        """ Update the channel's title and/or category """
        data = {}
        if title is not None:
            data["title"] = title
        if game_id is not None:
            data["game_id"] = str(game_id)
        params = {"broadcaster_id": broadcaster_id or self.user_id}
        await self._request("patch", apiEndpoints['broadcast'], params=params, data=json.dumps(data))
        return data
