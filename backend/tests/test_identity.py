from amp_widget.runtime.identity import Identity, get_path, resolve_identity
from amp_widget.schemas import IdentityConfig

PAGE = "https://shop.example.com/home"


def test_no_sources_yields_no_identity():
    assert resolve_identity(PAGE, {}, IdentityConfig()) is None


def test_email_param_override():
    identity = resolve_identity(f"{PAGE}?amp_email=test@example.com", {}, IdentityConfig())
    assert identity == Identity("email", "test@example.com")


def test_email_param_wins_over_every_other_source():
    config = IdentityConfig(data_layer_path="dataLayer.user.email", static_identity="demo@example.com")
    page_globals = {
        "dataLayer": {"user": {"email": "layer@example.com"}},
        "ampIdentity": {"email": "global@example.com"},
    }
    identity = resolve_identity(f"{PAGE}?amp_email=override@example.com", page_globals, config)
    assert identity.value == "override@example.com"


def test_test_id_pair_uses_configured_id_type():
    config = IdentityConfig(id_type="amperity_id")
    identity = resolve_identity(f"{PAGE}?amp_test=1&amp_id=AMP-42", {}, config)
    assert identity == Identity("amperity_id", "AMP-42")


def test_test_id_requires_both_params():
    config = IdentityConfig(static_identity="demo@example.com")
    identity = resolve_identity(f"{PAGE}?amp_id=AMP-42", {}, config)
    assert identity.value == "demo@example.com"


def test_data_layer_path():
    config = IdentityConfig(data_layer_path="dataLayer.user.email")
    page_globals = {"dataLayer": {"user": {"email": "layer@example.com"}},
                    "ampIdentity": {"email": "global@example.com"}}
    assert resolve_identity(PAGE, page_globals, config) == Identity("email", "layer@example.com")


def test_data_layer_missing_root_falls_through_to_global_identity():
    config = IdentityConfig(data_layer_path="dataLayer.user.email")
    page_globals = {"ampIdentity": {"email": "global@example.com"}}
    assert resolve_identity(PAGE, page_globals, config).value == "global@example.com"


def test_data_layer_missing_leaf_falls_through_to_static():
    config = IdentityConfig(data_layer_path="dataLayer.user.email", static_identity="demo@example.com")
    page_globals = {"dataLayer": {"user": None}}
    assert resolve_identity(PAGE, page_globals, config).value == "demo@example.com"


def test_static_identity_is_last_resort():
    config = IdentityConfig(static_identity="demo@example.com")
    assert resolve_identity(PAGE, {}, config) == Identity("email", "demo@example.com")


def test_resolution_is_deterministic():
    config = IdentityConfig(data_layer_path="dl.id")
    page_globals = {"dl": {"id": 12345}}
    first = resolve_identity(PAGE, page_globals, config)
    assert first == resolve_identity(PAGE, page_globals, config)
    assert first.value == "12345"


def test_get_path_never_raises_on_missing_segments():
    root = {"a": {"b": "leaf"}, "s": "string"}
    assert get_path(root, "a.b") == "leaf"
    assert get_path(root, "a.x.y") is None
    assert get_path(root, "s.length") is None
    assert get_path(root, "") is None


def test_get_path_is_depth_bounded():
    root = node = {}
    for _ in range(20):
        node["n"] = {}
        node = node["n"]
    assert get_path(root, ".".join(["n"] * 12)) is None
    assert get_path(root, "n.n.n") is not None
