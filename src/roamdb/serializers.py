import pickle


class ValueSerializer:
    """
    Default serializer for database snapshots.

    Pickle keeps the Python types of the snapshot intact (sets of ids,
    bool/int/str index keys, record objects), which a JSON round-trip
    would not. Any object exposing ``serialize``/``deserialize`` can be
    passed instead.
    """
    def serialize(self, value):
        return pickle.dumps(value, protocol=pickle.HIGHEST_PROTOCOL)

    def deserialize(self, value):
        return pickle.loads(value)
