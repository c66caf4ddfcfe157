from concurrent.futures import Future, ThreadPoolExecutor
from typing import Dict, List, Optional

from roamdb.config import RoamConfig
from roamdb.database import Database
from roamdb.loader import Loader, Scanner
from roamdb.node import Node
from roamdb.schema import Schema


class RoamDatabase:
    """
    Database of org-roam nodes backed by a snapshot on disk.

    Wraps a ``Loader`` and exposes the lookups callers need; anything else
    is available on the underlying ``Database`` returned by ``database()``.
    Nothing is read from disk until the first call that needs the database.
    """

    def __init__(self, path, files, scanner: Scanner, serializer=None, storage=None):
        self._path = path
        self._loader = Loader(path, files, scanner, serializer=serializer, storage=storage)
        self._executor = None

    @classmethod
    def from_config(cls, config: RoamConfig, scanner: Scanner, serializer=None) -> "RoamDatabase":
        return cls(
            str(config.database_path),
            [str(d) for d in config.directory],
            scanner,
            serializer=serializer,
            storage=config.open_storage(),
        )

    def path(self):
        return self._path

    def database(self) -> Database:
        return self._loader.database()

    def load(self, force: bool = False) -> Database:
        """Load the database and refresh it against the org files."""
        return self._loader.load(force=force)

    def load_file(self, path: str) -> List[Node]:
        db = self.database()
        return [db.get(id) for id in self._loader.load_file(path)]

    def save(self) -> None:
        """Refresh the database from the org files and write it out."""
        self.load()
        self._loader.save()

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="roamdb-io")
        return self._executor

    def save_async(self, executor: Optional[ThreadPoolExecutor] = None) -> Future:
        """
        Refresh the database and encode it now, then write it in the
        background. Changes made after this returns are not part of the
        write. The returned future resolves to None or raises a
        PersistenceError.

        :param executor: runs the write, defaults to a single worker owned
                         by this object and shut down by ``close``
        """
        executor = executor or self._get_executor()
        db = self.load()
        if self._loader.storage is not None:
            return db.save_to_storage_async(self._loader.storage, executor, self._loader.serializer)
        return db.write_to_disk_async(self._path, executor, self._loader.serializer)

    def close(self) -> None:
        """Wait for pending background writes, then close the storage."""
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
        if self._loader.storage is not None:
            self._loader.storage.close()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, id: str) -> Optional[Node]:
        return self.database().get(id)

    def _find_nodes(self, index: str, key) -> List[Node]:
        db = self.database()
        return [node for node in db.get_many(db.find_by_index(index, key)).values()
                if node is not None]

    def find_nodes_by_alias(self, alias: str) -> List[Node]:
        return self._find_nodes(Schema.ALIAS, alias)

    def find_nodes_by_file(self, file: str) -> List[Node]:
        return self._find_nodes(Schema.FILE, file)

    def find_nodes_by_tag(self, tag: str) -> List[Node]:
        return self._find_nodes(Schema.TAG, tag)

    def get_links(self, id: str, max_depth: Optional[float] = 1) -> Dict[str, int]:
        return self.database().get_links(id, max_depth=max_depth)

    def get_backlinks(self, id: str, max_depth: Optional[float] = 1) -> Dict[str, int]:
        return self.database().get_backlinks(id, max_depth=max_depth)

    def find_path(self, start_id: str, end_id: str,
                  max_distance: Optional[int] = None) -> Optional[List[str]]:
        return self.database().find_path(start_id, end_id, max_distance=max_distance)

    def __repr__(self):
        return f"RoamDatabase(path={self._path!r}, files={self._loader.files})"
