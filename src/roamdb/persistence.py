"""
Snapshot encoding and storage for ``Database``.

A snapshot is a dict with exactly four sections:

    nodes     id -> record data
    inbound   id -> set of ids linking to it
    outbound  id -> set of ids it links to
    indexes   index name -> index key -> set of ids

It is written either as one blob to a file, or section by section into a
``KVStorage`` in a single batch.
"""
import logging
import os
import tempfile
from typing import Dict

from roamdb.errors import DecodeError, DiskIOError, EncodeError
from roamdb.kvstorage import KVStorage
from roamdb.serializers import ValueSerializer

logger = logging.getLogger("roamdb.persistence")

SECTIONS = ("nodes", "inbound", "outbound", "indexes")


# ------------------------------------------------------------------
# Encoding
# ------------------------------------------------------------------

def encode(value, serializer=None) -> bytes:
    serializer = serializer or ValueSerializer()
    try:
        return serializer.serialize(value)
    except Exception as err:
        raise EncodeError(f"Failed to encode database: {err}") from err


def decode(blob: bytes, serializer=None):
    serializer = serializer or ValueSerializer()
    try:
        return serializer.deserialize(blob)
    except Exception as err:
        raise DecodeError(f"Failed to decode database: {err}") from err


def _id_sets(section, name) -> Dict[str, set]:
    if not isinstance(section, dict):
        raise DecodeError(f"Section {name!r} is not a mapping")
    try:
        return {node_id: set(ids) for node_id, ids in section.items()}
    except TypeError as err:
        raise DecodeError(f"Section {name!r} holds a non-iterable id set") from err


def validate(state) -> Dict:
    """
    Check that a decoded value has the four-section shape and normalize
    every id collection to a set (other serializers may hand back lists).
    """
    if not isinstance(state, dict):
        raise DecodeError("Database snapshot is not a mapping")
    if set(state) != set(SECTIONS):
        raise DecodeError(
            f"Database snapshot has sections {sorted(map(str, state))}, "
            f"expected {sorted(SECTIONS)}"
        )
    if not isinstance(state["nodes"], dict):
        raise DecodeError("Section 'nodes' is not a mapping")
    if not isinstance(state["indexes"], dict):
        raise DecodeError("Section 'indexes' is not a mapping")

    return {
        "nodes": dict(state["nodes"]),
        "inbound": _id_sets(state["inbound"], "inbound"),
        "outbound": _id_sets(state["outbound"], "outbound"),
        "indexes": {
            name: _id_sets(keys, f"indexes.{name}")
            for name, keys in state["indexes"].items()
        },
    }


# ------------------------------------------------------------------
# Files
# ------------------------------------------------------------------

def write_file(path, blob: bytes) -> None:
    """
    Write ``blob`` to ``path`` through a temporary file in the same directory
    that is then renamed over the target, so a failed write leaves any
    previous snapshot intact.
    """
    directory = os.path.dirname(os.path.abspath(path))
    tmp_path = None
    try:
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".roamdb-", suffix=".tmp")
        with os.fdopen(fd, "wb") as f:
            f.write(blob)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
        tmp_path = None
    except OSError as err:
        raise DiskIOError(f"Failed to write database to {path}: {err}") from err
    finally:
        if tmp_path is not None and os.path.exists(tmp_path):
            os.remove(tmp_path)

    logger.debug("wrote %d bytes to %s", len(blob), path)


def read_file(path) -> bytes:
    try:
        with open(path, "rb") as f:
            blob = f.read()
    except OSError as err:
        raise DiskIOError(f"Failed to read database from {path}: {err}") from err

    logger.debug("read %d bytes from %s", len(blob), path)
    return blob


# ------------------------------------------------------------------
# Key-value storage
# ------------------------------------------------------------------

def _section_key(name: str) -> bytes:
    return name.encode("utf-8")


def encode_sections(state: Dict, serializer=None) -> Dict[bytes, bytes]:
    """Encode every section under its own key, ready for ``put_batch``."""
    return {_section_key(name): encode(state[name], serializer) for name in SECTIONS}


def write_storage(storage: KVStorage, state: Dict, serializer=None) -> None:
    storage.put_batch(encode_sections(state, serializer))


def read_storage(storage: KVStorage, serializer=None) -> Dict:
    raw = storage.get_batch([_section_key(name) for name in SECTIONS])

    state = {}
    for name in SECTIONS:
        blob = raw.get(_section_key(name))
        if blob is None:
            raise DecodeError(f"Storage is missing section {name!r}")
        state[name] = decode(blob, serializer)
    return validate(state)


def has_storage_snapshot(storage: KVStorage) -> bool:
    return storage.get(_section_key("nodes")) is not None
