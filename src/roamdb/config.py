"""RoamConfig: project-local configuration for a roam database.

Default layout (all relative to the project root):

    roam.toml             # project config
    .roam/
        db                # database snapshot (or LMDB environment directory)

roam.toml example:

    [roam]
    directory = ["notes"]       # org files or directories holding them

    [database]
    path = ".roam/db"
    backend = "file"            # "file" (single snapshot blob) or "lmdb"
    map_size = 104857600        # lmdb only, in bytes
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from roamdb.kvstorage import KVStorage, LMDBStorage

_CONFIG_FILENAME = "roam.toml"
_DEFAULT_DATABASE_PATH = ".roam/db"
_BACKENDS = ("file", "lmdb")


@dataclass
class DatabaseConfig:
    path: str = _DEFAULT_DATABASE_PATH
    backend: str = "file"
    map_size: int = 100 * 1024 * 1024


@dataclass
class RoamConfig:
    """Resolved configuration for a roam project."""

    root: Path                      # directory that contains roam.toml
    directory: list[Path] = field(default_factory=list)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)

    @property
    def database_path(self) -> Path:
        return self.root / self.database.path

    @property
    def use_lmdb(self) -> bool:
        return self.database.backend == "lmdb"

    def open_storage(self) -> KVStorage | None:
        """LMDB environment for the lmdb backend, None for the file backend."""
        if not self.use_lmdb:
            return None
        return LMDBStorage(str(self.database_path), map_size=self.database.map_size)


def _find_root(start: Path) -> Path:
    """Walk upward from start looking for roam.toml; fall back to start."""
    for candidate in (start, *start.parents):
        if (candidate / _CONFIG_FILENAME).exists():
            return candidate
    return start


def load_config(root: Path | str | None = None) -> RoamConfig:
    """Load roam.toml from root (or search upward from cwd if root is None)."""
    root_path = _find_root(Path(root) if root else Path.cwd()).resolve()
    config_path = root_path / _CONFIG_FILENAME

    raw: dict[str, Any] = {}
    if config_path.exists():
        with config_path.open("rb") as f:
            raw = tomllib.load(f)

    roam = raw.get("roam", {})
    directory = roam.get("directory", ["."])
    if isinstance(directory, str):
        directory = [directory]

    db_raw = raw.get("database", {})
    database = DatabaseConfig(
        path=db_raw.get("path", _DEFAULT_DATABASE_PATH),
        backend=db_raw.get("backend", "file"),
        map_size=int(db_raw.get("map_size", DatabaseConfig.map_size)),
    )
    if database.backend not in _BACKENDS:
        raise ValueError(
            f"Unknown database backend {database.backend!r} in {config_path}, "
            f"expected one of {', '.join(_BACKENDS)}"
        )

    return RoamConfig(
        root=root_path,
        directory=[root_path / d for d in directory],
        database=database,
    )
