import os
import json
import asyncio
import logging
from abc import ABC, abstractmethod
import aiosqlite
from .utils import aioLoadJSON, aioSaveJSON

logger = logging.getLogger(__name__)


class BaseStorage(ABC):
    """ Key/value credential store """
    @abstractmethod
    async def get(self, key, default=None):
        pass

    @abstractmethod
    async def set(self, key, value):
        pass

#==================================================================
#==================================================================

class MemoryStorage(BaseStorage):
    def __init__(self, data=None):
        self.data = dict(data or {})

    async def get(self, key, default=None):
        return self.data.get(key, default)

    async def set(self, key, value):
        self.data[key] = value

#==================================================================
#==================================================================

class JSONStorage(BaseStorage):
    def __init__(self, file_path='db/twitch.json'):
        self.file_path = file_path
        self._lock = asyncio.Lock()

    async def _load(self):
        if not os.path.exists(self.file_path):
            return {}
        try:
            return await aioLoadJSON(self.file_path)
        except json.JSONDecodeError:
            logger.error(f"Corrupt credential file, starting empty: {self.file_path}")
            return {}

    async def get(self, key, default=None):
        data = await self._load()
        return data.get(key, default)

    async def set(self, key, value):
        # read-modify-write, so serialize writers
        async with self._lock:
            data = await self._load()
            data[key] = value
            await aioSaveJSON(data, self.file_path)

#==================================================================
#==================================================================

class SQLiteStorage(BaseStorage):
    """ One row per credential, values stored as json """
    def __init__(self, db_path='db/twitch.db', table='credentials'):
        self.db_path = db_path
        self.table = table
        self._table_ready = False
        dirname = os.path.dirname(self.db_path)
        if dirname:
            os.makedirs(dirname, exist_ok=True)

    async def _ensure_table(self, db):
        if self._table_ready:
            return
        await db.execute(f"CREATE TABLE IF NOT EXISTS {self.table} (name TEXT PRIMARY KEY, value_json TEXT NOT NULL)")
        await db.commit()
        self._table_ready = True

    async def keys(self):
        async with aiosqlite.connect(self.db_path) as db:
            await self._ensure_table(db)
            async with db.execute(f"SELECT name FROM {self.table} ORDER BY name") as cursor:
                return [row[0] for row in await cursor.fetchall()]

    async def get(self, key, default=None):
        async with aiosqlite.connect(self.db_path) as db:
            await self._ensure_table(db)
            async with db.execute(f"SELECT value_json FROM {self.table} WHERE name = ?", (key,)) as cursor:
                row = await cursor.fetchone()
        return default if row is None else json.loads(row[0])

    async def set(self, key, value):
        async with aiosqlite.connect(self.db_path) as db:
            await self._ensure_table(db)
            await db.execute(
                f"INSERT INTO {self.table} (name, value_json) VALUES (?, ?) "
                "ON CONFLICT(name) DO UPDATE SET value_json = excluded.value_json",
                (key, json.dumps(value))
            )
            await db.commit()
        logger.debug(f"[{self.table}] saved {key}")

#==================================================================
#==================================================================

class StorageFactory:
    @staticmethod
    def create_storage(storage_type='json', **kwargs):
        match storage_type:
            case 'json':
                return JSONStorage(**kwargs)
            case 'sqlite':
                return SQLiteStorage(**kwargs)
            case 'memory':
                return MemoryStorage(**kwargs)
            case _:
                logger.error(f"Unknown storage type: {storage_type}!")
                return storage_type(**kwargs)
