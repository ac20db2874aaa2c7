from collections.abc import MutableMapping, Sequence
from typing import Any


def set_nested_value(data: MutableMapping, keys: Sequence[str], value: Any) -> None:
    """Set ``value`` at the nested key path, creating intermediate tables as needed.

    Works on plain dicts as well as tomlkit documents and tables. An existing
    value at the final key is replaced.
    """
    if not keys:
        raise ValueError("keys must not be empty")
    current = data
    for depth, key in enumerate(keys[:-1]):
        child = current.get(key)
        if child is None:
            current[key] = {}
            child = current[key]
        if not isinstance(child, MutableMapping):
            path = ".".join(keys[: depth + 1])
            raise ValueError(f"'{path}' is a {type(child).__name__}, not a table")
        current = child
    current[keys[-1]] = value
