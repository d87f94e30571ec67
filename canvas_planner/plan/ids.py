"""Identifier generators for compiled canvas entities.

Both generators are backed by uuid4 and need no coordination: they are safe
to call from any thread, any number of times, and never repeat in practice.
"""

from __future__ import annotations

import uuid

# Entity id prefix per canvas node type.  Unlisted types fall back to "node-".
_ENTITY_PREFIXES: dict[str, str] = {
    "skillResponse": "ar-",
    "document": "d-",
    "resource": "r-",
    "memo": "m-",
    "codeArtifact": "ca-",
    "image": "img-",
    "video": "v-",
    "audio": "a-",
    "mediaSkillResponse": "msr-",
    "start": "start-",
}
_DEFAULT_PREFIX = "node-"


def gen_unique_id() -> str:
    """Return a fresh 32-char hex id (edge ids, node ids, fallback task symbols)."""
    return uuid.uuid4().hex


def gen_node_entity_id(node_type: str) -> str:
    """Return a globally unique entity id scoped by canvas node type.

    >>> gen_node_entity_id("skillResponse").startswith("ar-")
    True
    """
    prefix = _ENTITY_PREFIXES.get(node_type, _DEFAULT_PREFIX)
    return prefix + uuid.uuid4().hex
