"""
Keeps a ``Database`` of ``Node`` records in sync with a set of org files.

Parsing files is left to a scanner: any callable taking a file path and
returning the nodes found in it.
"""
import glob
import logging
import os
from collections import namedtuple
from typing import Callable, Dict, Iterable, List, Optional

from roamdb.database import Database
from roamdb.errors import DiskIOError
from roamdb.kvstorage import KVStorage
from roamdb.node import Node
from roamdb.persistence import has_storage_snapshot
from roamdb.schema import Schema

logger = logging.getLogger("roamdb.loader")

ORG_EXTENSIONS = (".org", ".org_archive")

FileDiff = namedtuple("FileDiff", ["left", "right", "both"])

Scanner = Callable[[str], Iterable[Node]]


def find_distinct(left: Iterable[str], right: Iterable[str]) -> FileDiff:
    """
    Split two collections of file names into those only in ``left``,
    only in ``right``, and in both. Each list is sorted.
    """
    left, right = set(left), set(right)
    return FileDiff(
        left=sorted(left - right),
        right=sorted(right - left),
        both=sorted(left & right),
    )


def _file_mtime(path: str) -> float:
    try:
        return os.stat(path).st_mtime
    except OSError as err:
        raise DiskIOError(f"Failed to stat {path}: {err}") from err


class Loader:
    """
    Loads the database (from a snapshot file, or a KVStorage when one is
    given) and refreshes it against the org files found under ``files``.
    """

    def __init__(self, database_path, files, scanner: Scanner,
                 serializer=None, storage: Optional[KVStorage] = None):
        """
        :param database_path: snapshot file of the database
        :param files: org files and/or directories to search for org files
        :param scanner: function(path) -> nodes parsed from that file
        :param serializer: snapshot serializer, pickle by default
        :param storage: save to and load from this storage instead of
                        ``database_path``
        """
        self.database_path = database_path
        self.files = [files] if isinstance(files, (str, os.PathLike)) else list(files)
        self.scanner = scanner
        self.serializer = serializer
        self.storage = storage
        self._db = None

    # ------------------------------------------------------------------
    # Database
    # ------------------------------------------------------------------

    def database(self) -> Database:
        """
        The cached database, loaded on first use. A missing snapshot means a
        fresh database; a corrupt one raises.
        """
        if self._db is not None:
            return self._db

        if self.storage is not None:
            if has_storage_snapshot(self.storage):
                db = Database.load_from_storage(self.storage, self.serializer)
            else:
                logger.info("no database in %r, starting empty", self.storage)
                db = Database()
        elif os.path.exists(self.database_path):
            db = Database.load_from_disk(self.database_path, self.serializer)
        else:
            logger.info("no database at %s, starting empty", self.database_path)
            db = Database()

        self._db = Schema.update(db)
        return self._db

    def save(self) -> None:
        db = self.database()
        if self.storage is not None:
            db.save_to_storage(self.storage, self.serializer)
        else:
            db.write_to_disk(self.database_path, self.serializer)

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def discover(self) -> List[str]:
        """Org files named directly in ``files`` or found below its directories."""
        found = set()
        for entry in self.files:
            entry = os.fspath(entry)
            if entry.endswith(ORG_EXTENSIONS):
                if os.path.isfile(entry):
                    found.add(entry)
                continue

            for ext in ORG_EXTENSIONS:
                pattern = os.path.join(glob.escape(entry), "**", "*" + ext)
                found.update(glob.glob(pattern, recursive=True))

        return sorted(found)

    def load(self, force: bool = False) -> Database:
        """
        Bring the database up to date with the files on disk: drop nodes of
        deleted files, add nodes of new files and rescan modified files.

        :param force: rescan every file, modified or not
        """
        db = self.database()

        diff = find_distinct(db.iter_index_keys(Schema.FILE), self.discover())

        for filename in diff.left:
            self._remove_file(db, filename)

        for filename in diff.right:
            self._replace_file(db, filename, [])

        for filename in diff.both:
            self._modify_file(db, filename, force=force)

        logger.info(
            "loaded database: %d removed, %d new, %d existing files, %d nodes",
            len(diff.left), len(diff.right), len(diff.both), len(db),
        )
        return db

    def load_file(self, path: str) -> List[str]:
        """
        Add or refresh a single file.

        :return: ids of the nodes now in the database for that file
        """
        db = self.database()

        if db.find_by_index(Schema.FILE, path):
            self._modify_file(db, path)
        else:
            self._replace_file(db, path, [])

        return db.find_by_index(Schema.FILE, path)

    def _scan(self, path: str) -> List[Node]:
        mtime = _file_mtime(path)
        nodes = list(self.scanner(path))
        for node in nodes:
            node.file = path
            node.mtime = mtime
        logger.debug("scanned %s: %d nodes", path, len(nodes))
        return nodes

    def _remove_file(self, db: Database, filename: str) -> None:
        for id in db.find_by_index(Schema.FILE, filename):
            db.remove(id)
        logger.debug("removed %s", filename)

    def _modify_file(self, db: Database, filename: str, force: bool = False) -> None:
        ids = db.find_by_index(Schema.FILE, filename)
        if not ids:
            return

        stored_mtime = getattr(db.get(ids[0]), "mtime", 0)
        if force or _file_mtime(filename) > stored_mtime:
            self._replace_file(db, filename, ids)

    def _replace_file(self, db: Database, filename: str, old_ids: List[str]) -> None:
        """
        Swap the nodes of ``old_ids`` for a fresh scan of ``filename``.
        Links from other nodes into the removed nodes are restored when the
        rescanned file still contains them.
        """
        nodes = self._scan(filename)

        node_backlinks: Dict[str, List[str]] = {}
        for id in old_ids:
            node_backlinks[id] = list(db.get_backlinks(id))
            db.remove(id)

        for node in nodes:
            existing = db.get(node.id)
            if existing is not None:
                logger.warning(
                    "node %s moved from %s to %s",
                    node.id, getattr(existing, "file", None), filename,
                )
                # overwrite keeps backlinks, the old outbound links are stale
                db.unlink(node.id)

            db.insert(node, id=node.id, overwrite=True)
            db.link(node.id, node.linked)

        for target_id, origin_ids in node_backlinks.items():
            if db.has(target_id):
                for origin_id in origin_ids:
                    if db.has(origin_id):
                        db.link(origin_id, [target_id])
