"""
Key and namespace scheme.

Grammar (preserved bit-for-bit for on-disk compatibility):
    global::<category>[::<id>]
    agent::<agent_id>::<category>[::<id>]
    session::<session_id>::<category>[::<id-or-index>]

Keys are opaque to the storage backends; only this module interprets them.
"""

from collections.abc import Iterable
from enum import Enum

SEPARATOR = "::"


class Scope(Enum):
    GLOBAL = "global"
    AGENT = "agent"
    SESSION = "session"


def global_namespace(category: str) -> str:
    return f"{Scope.GLOBAL.value}{SEPARATOR}{category}"


def agent_namespace(agent_id: str, category: str) -> str:
    return f"{Scope.AGENT.value}{SEPARATOR}{agent_id}{SEPARATOR}{category}"


def session_namespace(session_id: str, category: str) -> str:
    return f"{Scope.SESSION.value}{SEPARATOR}{session_id}{SEPARATOR}{category}"


def child_key(namespace: str, *parts: str) -> str:
    """Append one or more segments to a namespace."""
    return SEPARATOR.join([namespace, *parts])


def in_namespace(key: str, namespace: str) -> bool:
    """True when key is the namespace itself or lies beneath it.

    Matching is segment-aware: "agent::a1" does not contain "agent::a10::x".
    """
    return key == namespace or key.startswith(namespace + SEPARATOR)


def strip_namespace(namespace: str, keys: Iterable[str]) -> list[str]:
    """Recover logical identifiers by removing "<namespace>::" from keys.

    Keys outside the namespace (and the bare namespace key) are dropped.
    """
    prefix = namespace + SEPARATOR
    return [key[len(prefix):] for key in keys if key.startswith(prefix)]
