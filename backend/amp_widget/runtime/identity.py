"""Visitor identity resolution.

Identity comes from, in order: the URL test overrides, a configured
data-layer path on the page globals, the conventional ``ampIdentity``
global, and finally the configured static identity.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional
from urllib.parse import parse_qs, urlsplit

from ..schemas import IdentityConfig

EMAIL_PARAM = "amp_email"
TEST_FLAG_PARAM = "amp_test"
TEST_ID_PARAM = "amp_id"
GLOBAL_IDENTITY = "ampIdentity"
MAX_PATH_DEPTH = 8


@dataclass(frozen=True)
class Identity:
    type: str
    value: str


def get_path(root: Mapping[str, Any], path: str, max_depth: int = MAX_PATH_DEPTH) -> Optional[Any]:
    """Walk a dot-separated path; any missing segment yields None."""
    segments = path.split(".")
    if not path or len(segments) > max_depth:
        return None
    node: Any = root
    for segment in segments:
        if not isinstance(node, Mapping) or segment not in node:
            return None
        node = node[segment]
    return node


def _scalar(value: Any) -> Optional[str]:
    if isinstance(value, bool) or not value:
        return None
    if isinstance(value, (str, int, float)):
        return str(value)
    return None


def resolve_identity(url: str, page_globals: Mapping[str, Any], identity_config: IdentityConfig) -> Optional[Identity]:
    id_type = identity_config.id_type or "email"
    params = parse_qs(urlsplit(url).query, keep_blank_values=True)

    if EMAIL_PARAM in params:
        return Identity("email", params[EMAIL_PARAM][0])
    if TEST_FLAG_PARAM in params and TEST_ID_PARAM in params:
        return Identity(id_type, params[TEST_ID_PARAM][0])

    path = identity_config.data_layer_path
    if path and page_globals.get(path.split(".")[0]):
        value = _scalar(get_path(page_globals, path))
        if value:
            return Identity(id_type, value)

    global_identity = page_globals.get(GLOBAL_IDENTITY)
    if isinstance(global_identity, Mapping):
        email = _scalar(global_identity.get("email"))
        if email:
            return Identity("email", email)

    if identity_config.static_identity:
        return Identity(id_type, identity_config.static_identity)

    return None
