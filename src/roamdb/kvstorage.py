import os
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import lmdb


class KVStorage(ABC):
    """
    Where database snapshots live when they are not written to a single file.
    A snapshot is one key per section, written in one batch and read back in
    one batch.
    """

    @abstractmethod
    def put_batch(self, items: Dict[bytes, bytes]) -> None:
        """Store every section of a snapshot together."""

    @abstractmethod
    def get(self, key: bytes) -> Optional[bytes]:
        """The stored value for ``key``, or None."""

    @abstractmethod
    def get_batch(self, keys: List[bytes]) -> Dict[bytes, Optional[bytes]]:
        """Map each key to its stored value, None for missing keys."""

    @abstractmethod
    def close(self) -> None:
        pass


class MemoryStorage(KVStorage):
    """Snapshots held in a dict for the lifetime of the process."""

    def __init__(self):
        self._data = {}

    def put_batch(self, items: Dict[bytes, bytes]) -> None:
        self._data.update(items)

    def get(self, key: bytes) -> Optional[bytes]:
        return self._data.get(key)

    def get_batch(self, keys: List[bytes]) -> Dict[bytes, Optional[bytes]]:
        return {k: self._data.get(k) for k in keys}

    def close(self) -> None:
        self._data = {}


class LMDBStorage(KVStorage):
    """
    Snapshots in an LMDB environment. Sections are kept in a named
    sub-database, so the environment can be shared with other data.
    A batch is written in one write transaction and read in one read
    transaction.
    """
    SUBDB = b"roamdb"

    def __init__(self, db_path: str, map_size=1024 * 1024 * 100, **kwargs):
        """
        :param db_path: directory path for LMDB environment
        :param map_size: max size of the database in bytes
        """
        os.makedirs(db_path, exist_ok=True)
        self._path = db_path
        self._env = lmdb.open(db_path, map_size=map_size, max_dbs=1, **kwargs)
        self._db = self._env.open_db(self.SUBDB)

    def put_batch(self, items: Dict[bytes, bytes]) -> None:
        with self._env.begin(write=True, db=self._db) as txn:
            for k, v in items.items():
                txn.put(k, v)

    def get(self, key: bytes) -> Optional[bytes]:
        with self._env.begin(db=self._db) as txn:
            return txn.get(key)

    def get_batch(self, keys: List[bytes]) -> Dict[bytes, Optional[bytes]]:
        with self._env.begin(db=self._db) as txn:
            return {k: txn.get(k) for k in keys}

    def close(self) -> None:
        self._env.close()

    def __repr__(self):
        return f"LMDBStorage({self._path!r})"
