from roamdb.database import Database


def _field(name):
    def indexer(node):
        if isinstance(node, dict):
            return node.get(name)
        return getattr(node, name, None)
    return indexer


class Schema:
    """Names of the standard indexes kept on a database of ``Node`` records."""

    ALIAS = "alias"
    FILE = "file"
    TAG = "tag"

    INDEXERS = {
        ALIAS: _field("aliases"),
        FILE: _field("file"),
        TAG: _field("tags"),
    }

    @classmethod
    def update(cls, db: Database) -> Database:
        """
        Register every standard index missing from ``db`` and index the
        existing nodes for those new indexes only.
        """
        new_indexes = []
        for name, indexer in cls.INDEXERS.items():
            if not db.has_index(name):
                db.new_index(name, indexer)
                new_indexes.append(name)

        if new_indexes:
            db.reindex(indexes=new_indexes)

        return db
