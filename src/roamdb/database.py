import logging
import uuid
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Set, Tuple

from roamdb import persistence
from roamdb.errors import DuplicateIdError, InvalidIndexError, NullDataError
from roamdb.kvstorage import KVStorage

logger = logging.getLogger("roamdb.database")

_SCALAR_KEY_TYPES = (bool, int, float, str)


def _bucket(key):
    # True == 1 and False == 0 as dict keys, so booleans get buckets of their own
    return (bool, key) if isinstance(key, bool) else key


def _unbucket(bucket):
    if isinstance(bucket, tuple) and len(bucket) == 2 and bucket[0] is bool:
        return bucket[1]
    return bucket


class Database:
    """
    An in-memory directed graph of records with secondary indexes.

    Stores:
      - nodes:    id -> record data (any non-None value)
      - outbound: id -> set of ids it links to
      - inbound:  id -> set of ids linking to it
      - indexers: index name -> function(data) -> key, list of keys or None
      - indexes:  index name -> key -> set of ids

    Edges are always added and removed in pairs, so ``b in outbound[a]``
    holds exactly when ``a in inbound[b]``. Edges may reference ids that
    have not been inserted (yet).

    The database is not thread-safe: it is meant to be owned by a single
    thread. Only disk I/O is offered as background work, through the
    ``*_async`` methods.
    """

    def __init__(self):
        self._changed_tick = 0
        self._nodes = {}
        self._outbound = {}
        self._inbound = {}
        self._indexers = {}
        self._indexes = {}

    # ------------------------------------------------------------------
    # Change tracking
    # ------------------------------------------------------------------

    def changed_tick(self) -> int:
        """
        Number of changes made to this instance. Not persisted: a loaded
        database starts again from 0.
        """
        return self._changed_tick

    def _update_tick(self):
        self._changed_tick += 1

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def insert(self, data, id: Optional[str] = None, overwrite: bool = False) -> str:
        """
        Insert ``data`` as a node with no edges of its own.

        :param data: record payload, must not be None
        :param id: identifier to use; a uuid4 is generated when omitted
        :param overwrite: replace an existing node with the same id, keeping
                          its links and backlinks
        :return: the id of the inserted node
        """
        if data is None:
            raise NullDataError("Cannot insert None as data")

        if not isinstance(id, str):
            id = str(uuid.uuid4())

        links, backlinks = set(), set()
        if overwrite and self.has(id):
            links = set(self._outbound.get(id, ()))
            backlinks = set(self._inbound.get(id, ()))
            self.remove(id)

        if self.has(id):
            raise DuplicateIdError(id)

        self._nodes[id] = data

        # Links made before the node was inserted already created these
        self._outbound.setdefault(id, set())
        self._inbound.setdefault(id, set())

        if links:
            self.link(id, links)
        for backlink_id in backlinks:
            self.link(backlink_id, [id])

        self.reindex(ids=[id])
        self._update_tick()

        return id

    def remove(self, id: str):
        """
        Remove a node, disconnecting it from every other node and every index.

        :return: the removed node's data, or None if no node had that id
        """
        for backlink_id in list(self._inbound.get(id, ())):
            self.unlink(backlink_id, [id])

        self.unlink(id)

        self.reindex(ids=[id], remove=True)

        data = self._nodes.pop(id, None)
        self._update_tick()

        return data

    def has(self, id: str) -> bool:
        return self.get(id) is not None

    def get(self, id: str):
        return self._nodes.get(id)

    def get_many(self, ids: Iterable[str]) -> Dict[str, object]:
        return {id: self.get(id) for id in ids}

    def ids(self) -> Set[str]:
        return set(self._nodes)

    def iter_ids(self) -> Iterator[str]:
        # Snapshot the keys so callers may mutate while iterating
        return iter(list(self._nodes))

    def __len__(self):
        return len(self._nodes)

    def __contains__(self, id):
        return self.has(id)

    # ------------------------------------------------------------------
    # Edges
    # ------------------------------------------------------------------

    def link(self, id: str, targets: Iterable[str]) -> None:
        """Create edges ``id -> target`` for each target. Existing edges are kept as-is."""
        outbound = self._outbound.setdefault(id, set())

        for target in targets:
            outbound.add(target)
            self._inbound.setdefault(target, set()).add(id)

        self._update_tick()

    def unlink(self, id: str, targets: Optional[Iterable[str]] = None) -> List[str]:
        """
        Remove edges ``id -> target``; all outbound edges of ``id`` when no
        targets are given.

        :return: the targets for which an edge was actually removed
        """
        outbound = self._outbound.get(id, set())

        if targets is None:
            targets = list(outbound)

        removed = []
        for target in targets:
            had_edge = target in outbound
            outbound.discard(target)

            inbound = self._inbound.get(target)
            if inbound is not None and id in inbound:
                had_edge = True
                inbound.discard(id)

            if had_edge:
                removed.append(target)

        self._update_tick()

        return removed

    def _get_links_in_direction(self, root_id: str, max_depth, edges) -> Dict[str, int]:
        if max_depth is None:
            max_depth = 1

        found = {}
        ids = list(edges.get(root_id, ()))

        step = 1
        while step <= max_depth and ids:
            step_ids, ids = ids, []

            for step_id in step_ids:
                if step_id == root_id or step_id in found:
                    continue

                found[step_id] = step
                ids.extend(edges.get(step_id, ()))

            step += 1

        return found

    def get_links(self, id: str, max_depth: Optional[float] = 1) -> Dict[str, int]:
        """
        Ids reachable by following outbound edges from ``id``, mapped to the
        fewest steps needed to reach them. ``id`` itself is never included.
        ``max_depth`` may be ``float("inf")`` to follow every reachable edge.
        """
        return self._get_links_in_direction(id, max_depth, self._outbound)

    def get_backlinks(self, id: str, max_depth: Optional[float] = 1) -> Dict[str, int]:
        """Same as ``get_links``, following inbound edges."""
        return self._get_links_in_direction(id, max_depth, self._inbound)

    # ------------------------------------------------------------------
    # Indexes
    # ------------------------------------------------------------------

    def new_index(self, name: str, indexer: Callable) -> "Database":
        """
        Register ``indexer`` under ``name``. Existing nodes are not indexed
        until ``reindex`` is called; inserted nodes are indexed automatically.
        """
        self._indexers[name] = indexer
        self._update_tick()
        return self

    def has_index(self, name: str) -> bool:
        return name in self._indexers

    def iter_index_keys(self, name: str) -> Iterator:
        return iter([_unbucket(bucket) for bucket in self._indexes.get(name, {})])

    def find_by_index(self, name: str, key) -> List[str]:
        """
        Ids of nodes stored under an index.

        :param key: an exact key, or a function(key) -> bool selecting the
                    keys whose ids are returned

        ``True`` and ``1`` (``False`` and ``0``) are different keys.
        """
        index = self._indexes.get(name, {})

        if isinstance(key, _SCALAR_KEY_TYPES):
            return list(index.get(_bucket(key), ()))

        if callable(key):
            ids = set()
            for index_key, key_ids in index.items():
                if key(_unbucket(index_key)):
                    ids.update(key_ids)
            return list(ids)

        return []

    @staticmethod
    def _index_keys(result) -> list:
        if isinstance(result, _SCALAR_KEY_TYPES):
            return [result]
        if isinstance(result, (list, tuple, set, frozenset)):
            return [k for k in result if k is not None]
        return []

    def reindex(self, ids: Optional[Iterable[str]] = None,
                indexes: Optional[Iterable[str]] = None,
                remove: bool = False) -> "Database":
        """
        Run indexers against nodes and record their ids under the produced keys.

        Reindexing only ever adds ids to keys. If a node's data changed so that
        an indexer now yields different keys, the old keys still hold the id;
        remove the node's entries first (``remove=True``, or remove and
        re-insert the node) to avoid stale lookups.

        :param ids: nodes to index, defaults to every node
        :param indexes: index names to run, defaults to every registered index
        :param remove: drop the nodes' ids from the produced keys instead
        """
        ids = list(ids) if ids else list(self._nodes)
        names = list(indexes) if indexes else list(self._indexers)

        for name in names:
            indexer = self._indexers.get(name)
            if indexer is None:
                raise InvalidIndexError(name)

            index = self._indexes.setdefault(name, {})

            for id in ids:
                data = self.get(id)
                if data is None:
                    continue

                for key in map(_bucket, self._index_keys(indexer(data))):
                    if remove:
                        key_ids = index.get(key)
                        if key_ids is not None:
                            key_ids.discard(id)
                            if not key_ids:
                                del index[key]
                    else:
                        index.setdefault(key, set()).add(id)

        self._update_tick()
        return self

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    def iter_nodes(self, start_id: str, max_nodes: Optional[int] = None,
                   max_distance: Optional[int] = None,
                   filter: Optional[Callable[[str, int], bool]] = None) -> Iterator[Tuple[str, int]]:
        """
        Breadth-first walk over outbound edges, yielding ``(id, distance)``
        one node at a time, starting with ``(start_id, 0)``.

        :param max_nodes: stop after yielding this many nodes
        :param max_distance: do not go further than this many steps
        :param filter: function(id, distance) -> bool; rejected nodes are
                       neither yielded nor expanded
        """
        max_nodes = float("inf") if max_nodes is None else max_nodes
        max_distance = float("inf") if max_distance is None else max_distance

        visited = set()
        queue = deque([(start_id, 0)])
        count = 0

        while count < max_nodes and queue:
            id, distance = queue.popleft()

            if distance > max_distance or id in visited:
                continue
            if filter is not None and not filter(id, distance):
                continue

            visited.add(id)
            count += 1

            if distance + 1 <= max_distance:
                for link_id in self._outbound.get(id, ()):
                    queue.append((link_id, distance + 1))

            yield id, distance

    def iter_paths(self, start_id: str, end_id: str,
                   max_distance: Optional[int] = None) -> Iterator[List[str]]:
        """
        Breadth-first enumeration of the paths from ``start_id`` to ``end_id``
        following outbound edges. Paths never visit a node twice, and a path
        stops at the first time it reaches ``end_id``.

        :param max_distance: longest path to explore, in edges
        """
        max_distance = float("inf") if max_distance is None else max_distance

        # Each partial path maps id -> position; dicts keep insertion order
        queue = deque([({start_id: 1}, start_id)])

        while queue:
            path, last_id = queue.popleft()

            if last_id == end_id:
                yield list(path)
                continue

            position = path[last_id]
            if position <= max_distance:
                for link_id in self._outbound.get(last_id, ()):
                    if link_id not in path:
                        extended = dict(path)
                        extended[link_id] = position + 1
                        queue.append((extended, link_id))

    def find_path(self, start_id: str, end_id: str,
                  max_distance: Optional[int] = None) -> Optional[List[str]]:
        """First (shortest) path found by ``iter_paths``, or None."""
        return next(self.iter_paths(start_id, end_id, max_distance=max_distance), None)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def snapshot(self) -> Dict:
        """The four persisted sections. Indexer functions are not part of it."""
        return {
            "nodes": self._nodes,
            "inbound": self._inbound,
            "outbound": self._outbound,
            "indexes": self._indexes,
        }

    @classmethod
    def from_snapshot(cls, state: Dict) -> "Database":
        state = persistence.validate(state)
        db = cls()
        db._nodes = state["nodes"]
        db._inbound = state["inbound"]
        db._outbound = state["outbound"]
        db._indexes = state["indexes"]
        return db

    def write_to_disk(self, path, serializer=None) -> None:
        blob = persistence.encode(self.snapshot(), serializer)
        persistence.write_file(path, blob)
        logger.info("saved %d nodes to %s", len(self._nodes), path)

    @classmethod
    def load_from_disk(cls, path, serializer=None) -> "Database":
        """
        Load a database written by ``write_to_disk``. Indexes are restored,
        indexers are not: register them again before reindexing.
        """
        blob = persistence.read_file(path)
        db = cls.from_snapshot(persistence.decode(blob, serializer))
        logger.info("loaded %d nodes from %s", len(db), path)
        return db

    def write_to_disk_async(self, path, executor: ThreadPoolExecutor, serializer=None) -> Future:
        """
        Encode the database now and write it on ``executor``.
        The returned future resolves to None or raises a PersistenceError.
        """
        blob = persistence.encode(self.snapshot(), serializer)
        return executor.submit(persistence.write_file, path, blob)

    @classmethod
    def load_from_disk_async(cls, path, executor: ThreadPoolExecutor, serializer=None) -> Future:
        return executor.submit(cls.load_from_disk, path, serializer)

    def save_to_storage(self, storage: KVStorage, serializer=None) -> None:
        persistence.write_storage(storage, self.snapshot(), serializer)
        logger.info("saved %d nodes to %r", len(self._nodes), storage)

    def save_to_storage_async(self, storage: KVStorage, executor: ThreadPoolExecutor,
                              serializer=None) -> Future:
        """Encode the sections now and write the batch to ``storage`` on ``executor``."""
        batch = persistence.encode_sections(self.snapshot(), serializer)
        return executor.submit(storage.put_batch, batch)

    @classmethod
    def load_from_storage(cls, storage: KVStorage, serializer=None) -> "Database":
        db = cls.from_snapshot(persistence.read_storage(storage, serializer))
        logger.info("loaded %d nodes from %r", len(db), storage)
        return db

    def __repr__(self):
        edges = sum(len(ids) for ids in self._outbound.values())
        return (f"Database(nodes={len(self._nodes)}, edges={edges}, "
                f"indexes={sorted(self._indexers)})")
