#
# Helpers shared by the mapping, groups and filter modules
#
import re
import threading
from typing import Any, Dict, Hashable, Iterable, List, Sequence

_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")
_TRUTHY = ("true", "1", "yes", "on")


def camel_to_snake(value: str) -> str:
    """
    :param value: camelCased string, eg. "startsWith"
    :return: snake_cased string, eg. "starts_with"
    """
    return _CAMEL_RE.sub("_", value).lower()


def parse_string_as_boolean(value: Any) -> bool:
    """
    Query string values are strings: "true", "1", "yes" and "on" are True, anything else is False
    """
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in _TRUTHY


def unique(items: Iterable[Hashable]) -> List:
    """
    :return: list of the items without duplicates, keeping the first occurrence order
    """
    return list(dict.fromkeys(items))


def deep_merge_unique(target: Dict, *sources: Dict) -> Dict:
    """Recursively merge `sources` into `target`, lists are concatenated without duplicates
    :param target: dict that will be updated
    :param sources: dicts merged into target, in order
    :return: target
    """
    for source in sources:
        for key, value in source.items():
            current = target.get(key)
            if isinstance(current, dict) and isinstance(value, dict):
                deep_merge_unique(current, value)
            elif isinstance(current, list) and isinstance(value, (list, tuple)):
                target[key] = unique(current + list(value))
            elif isinstance(value, dict):
                target[key] = deep_merge_unique({}, value)
            elif isinstance(value, (list, tuple)):
                target[key] = unique(value)
            else:
                target[key] = value
    return target


def dict_merge(dct: Dict, merge_dct: Dict) -> None:
    """Recursive dict merge used for creating the swagger document.
    Instead of updating only top-level keys, dict_merge recurses down into dicts nested
    to an arbitrary depth, updating keys. The ``merge_dct`` is merged into ``dct``.
    """
    for k in merge_dct:
        if k in dct and isinstance(dct[k], dict):
            dict_merge(dct[k], merge_dct[k])
        else:
            # convert to string, for ex. http return codes
            dct[str(k)] = merge_dct[k]


def get_nested(obj: Dict, path: Sequence[Hashable], default: Any = None) -> Any:
    """
    :return: value of the nested dict `obj` at `path` or `default`
    """
    current = obj
    for key in path:
        if not isinstance(current, dict) or key not in current:
            return default
        current = current[key]
    return current


def set_nested_key(obj: Dict, path: Sequence[Hashable], value: Any) -> Dict:
    """
    Set `value` in the nested dict `obj` at `path`, intermediate dicts are created when missing
    """
    current = obj
    for key in path[:-1]:
        current = current.setdefault(key, {})
    current[path[-1]] = value
    return obj


def sort_by_key(obj: Dict) -> Dict:
    """
    :return: copy of `obj` with its keys sorted, int keys (filter indexes) come before str keys
    """
    return {k: obj[k] for k in sorted(obj, key=lambda k: (isinstance(k, str), k))}


class OnceCache:
    """
    Thread safe cache of static metadata (groups, mappings, route tables).
    The value is built outside of the lock, a concurrent build of the same key
    is discarded and the first stored value wins.
    """

    def __init__(self) -> None:
        self._values: Dict[Hashable, Any] = {}
        self._lock = threading.Lock()

    def get_or_build(self, key: Hashable, builder) -> Any:
        with self._lock:
            if key in self._values:
                return self._values[key]
        value = builder()
        with self._lock:
            return self._values.setdefault(key, value)

    def clear(self) -> None:
        with self._lock:
            self._values.clear()

    def __len__(self) -> int:
        return len(self._values)
