class RoamDBError(Exception):
    """Base class for every error raised by roamdb."""


class NullDataError(RoamDBError, ValueError):
    """Raised when ``None`` is inserted as record data."""


class DuplicateIdError(RoamDBError, ValueError):
    """Raised when inserting an id that already exists without ``overwrite``."""

    def __init__(self, node_id):
        super().__init__(f"inserting node {node_id}, but already exists")
        self.node_id = node_id


class InvalidIndexError(RoamDBError, KeyError):
    """Raised when an operation requires an index that was never registered."""

    def __init__(self, name):
        super().__init__(f"Invalid index: {name}")
        self.name = name

    def __str__(self):
        # KeyError would repr() the message otherwise
        return self.args[0]


class PersistenceError(RoamDBError):
    """Base class for recoverable snapshot errors."""


class DiskIOError(PersistenceError):
    """Reading or writing the snapshot failed at the OS level."""


class DecodeError(PersistenceError):
    """The snapshot is corrupt or does not have the expected shape."""


class EncodeError(PersistenceError):
    """The in-memory state could not be serialized."""
