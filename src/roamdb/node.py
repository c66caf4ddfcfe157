import os


class Node:
    """
    An org-roam node: a file, or a headline within a file, carrying an id.

    - id: unique identifier of the node
    - file: path of the file containing the node
    - title: node title; defaults to the file name without ``.org``
    - aliases: alternative names the node can be found by
    - tags: tags of the node (file tags for file nodes)
    - level: outline level of the headline, 0 for a file node
    - linked: id of each linked node -> positions of the links in the file
    - mtime: modification time of ``file`` when the node was scanned
    """

    def __init__(self, id, file, title=None, aliases=None, tags=None,
                 level=0, linked=None, mtime=0):
        self.id = id
        self.file = file
        self.title = title if title is not None else self._title_from_file(file)
        self.aliases = list(aliases or [])
        self.tags = list(tags or [])
        self.level = level
        self.linked = dict(linked or {})
        self.mtime = mtime

    @staticmethod
    def _title_from_file(file):
        filename = os.path.basename(file)
        if filename.endswith(".org"):
            filename = filename[:-len(".org")]
        return filename

    def is_file_node(self):
        return self.level == 0

    def is_headline_node(self):
        return self.level != 0

    def to_dict(self):
        return {
            "id": self.id,
            "file": self.file,
            "title": self.title,
            "aliases": self.aliases,
            "tags": self.tags,
            "level": self.level,
            "linked": self.linked,
            "mtime": self.mtime,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=data["id"],
            file=data["file"],
            title=data.get("title"),
            aliases=data.get("aliases"),
            tags=data.get("tags"),
            level=data.get("level", 0),
            linked=data.get("linked"),
            mtime=data.get("mtime", 0),
        )

    def __eq__(self, other):
        if not isinstance(other, Node):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    __hash__ = None

    def __repr__(self):
        return (f"Node(id={self.id}, title={self.title!r}, file={self.file}, "
                f"level={self.level}, tags={self.tags}, links={len(self.linked)})")
