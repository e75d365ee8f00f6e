import os
import json
import asyncio
import logging
from datetime import datetime
# Third-party imports
import aiofiles
from dateutil import parser

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s-%(levelname)s-[%(name)s] %(message)s"

# served to the browser after the oauth redirect
closeBrowser = """<!DOCTYPE html>
<html lang="en">
<head><meta charset="utf-8"><title>streamrelay</title></head>
<body onload="setTimeout(() => window.close(), 1500)">
    <p>Logged in to Twitch. This tab can be closed.</p>
</body>
</html>
"""


def setup_logging(level=logging.INFO):
    """ Configures the root logger for applications embedding streamrelay """
    logging.basicConfig(format=LOG_FORMAT, datefmt="%I:%M:%S%p", level=level)

def loadJSON(filename):
    with open(filename, encoding='utf-8') as f:
        data = json.load(f)
    logger.debug(f"[loadJSON] {filename}")
    return data

async def aioLoadJSON(filename):
    async with aiofiles.open(filename, encoding='utf-8') as f:
        return json.loads(await f.read())

async def aioSaveJSON(data, filename):
    """ Writes `data` to `filename`, creating missing directories """
    dirname = os.path.dirname(filename)
    if dirname:
        os.makedirs(dirname, exist_ok=True)
    async with aiofiles.open(filename, 'w', encoding='utf-8') as f:
        await f.write(json.dumps(data, indent=2))
    logger.debug(f"[aioSaveJSON] {filename}")

def parse_date(value):
    """ Returns a datetime for an ISO timestamp string, passes datetimes and None through """
    if value is None or isinstance(value, datetime):
        return value
    return parser.parse(value)

async def sleep(seconds):
    """ Sleeps for `seconds`, returns immediately for zero or negative values """
    if seconds and seconds > 0:
        await asyncio.sleep(seconds)
