from roamdb.database import Database
from roamdb.errors import (
    DecodeError,
    DiskIOError,
    DuplicateIdError,
    EncodeError,
    InvalidIndexError,
    NullDataError,
    PersistenceError,
    RoamDBError,
)
from roamdb.kvstorage import KVStorage, LMDBStorage, MemoryStorage
from roamdb.loader import Loader
from roamdb.node import Node
from roamdb.roam import RoamDatabase
from roamdb.schema import Schema
from roamdb.serializers import ValueSerializer

__all__ = [
    "Database",
    "DecodeError",
    "DiskIOError",
    "DuplicateIdError",
    "EncodeError",
    "InvalidIndexError",
    "KVStorage",
    "LMDBStorage",
    "Loader",
    "MemoryStorage",
    "Node",
    "NullDataError",
    "PersistenceError",
    "RoamDBError",
    "RoamDatabase",
    "Schema",
    "ValueSerializer",
]
