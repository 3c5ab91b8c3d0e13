import json

import pytest
from conftest import CONFIG_ID, make_config, make_strategy

from amp_widget.generator import (
    DATA_SENTINEL,
    error_script,
    generate_embed_snippet,
    generate_widget_code,
    to_js_literal,
    widget_data,
)
from amp_widget.schemas import CopyVariant, FallbackContent, IdentityConfig

APP_URL = "https://widgets.example.com"

HOSTILE_STRINGS = [
    'He said "hi"',
    "it's a trap",
    "back\\slash \\u0041",
    "</script><script>alert(1)</script>",
    "<!-- comment --> & more",
    "line\u2028separator\u2029paragraph",
    "'; alert(document.cookie); //",
    "${template} `backtick`",
]


def embedded_data(code: str) -> dict:
    start = code.index("var W = ") + len("var W = ")
    end = code.index(";\n", start)
    return json.loads(code[start:end])


class TestToJsLiteral:
    @pytest.mark.parametrize("value", HOSTILE_STRINGS)
    def test_hostile_strings_stay_data(self, value):
        literal = to_js_literal(value)
        assert json.loads(literal) == value
        assert "<" not in literal and ">" not in literal
        assert "'" not in literal
        assert "\u2028" not in literal and "\u2029" not in literal

    def test_nested_structures(self):
        value = {"a": [1, 2.5, None, True], "b": {"c": "</script>"}}
        literal = to_js_literal(value)
        assert json.loads(literal) == value
        assert "</script>" not in literal


class TestGenerateWidgetCode:
    def test_embeds_configuration_as_literal(self):
        config = make_config()
        code = generate_widget_code(config, APP_URL)

        assert DATA_SENTINEL not in code
        assert code.startswith("(function () {")
        assert code.rstrip().endswith("})();")
        assert embedded_data(code) == json.loads(to_js_literal(widget_data(config, APP_URL)))

    def test_data_contents(self):
        config = make_config(identity_config=IdentityConfig(
            data_layer_path="dataLayer.user.email", static_identity="demo@example.com"))
        data = embedded_data(generate_widget_code(config, APP_URL + "/"))

        assert data["configId"] == CONFIG_ID
        assert data["containerId"] == f"amp-widget-{CONFIG_ID}"
        assert data["apiBase"] == APP_URL
        assert data["timeoutMs"] == 3000
        assert data["idType"] == "email"
        assert data["widget"]["type"] == "hero_banner"
        assert data["fallback"]["headline"] == "Welcome to Acme"
        assert data["copyVariants"][0]["headline"] == "Welcome back, {{given_name}}!"
        assert data["imageAssets"][0]["url"] == "https://images.example.com/hero.jpg"
        assert data["fieldsUsed"] == ["given_name", "loyalty_tier"]
        assert data["identity"] == {"data_layer_path": "dataLayer.user.email",
                                    "static_identity": "demo@example.com"}
        assert "max-width: 1200px;" in data["styles"]

    def test_identity_id_type_overrides_api_id_type(self):
        config = make_config(identity_config=IdentityConfig(id_type="cookie_id"))
        assert embedded_data(generate_widget_code(config, APP_URL))["idType"] == "cookie_id"

    def test_stored_text_cannot_break_out_of_script(self):
        strategy = make_strategy(
            copy_variants=[CopyVariant(id="v1", headline=s) for s in HOSTILE_STRINGS],
            fallback_content=FallbackContent(headline="</script><img src=x onerror=alert(1)>"),
        )
        code = generate_widget_code(make_config(personalization=strategy), APP_URL)

        assert "</script>" not in code
        assert "<img" not in code
        assert "'; alert(document.cookie)" not in code
        headlines = [v["headline"] for v in embedded_data(code)["copyVariants"]]
        assert headlines == HOSTILE_STRINGS

    def test_generation_is_pure(self):
        config = make_config()
        assert generate_widget_code(config, APP_URL) == generate_widget_code(config, APP_URL)

    def test_runtime_contract_markers(self):
        code = generate_widget_code(make_config(), APP_URL)
        assert "attachShadow({ mode: 'closed' })" in code
        assert "'/lookup?id_value=' + encodeURIComponent(identity.value)" in code
        assert "params.has('amp_email')" in code
        assert "DOMContentLoaded" in code
        assert "innerHTML" not in code


def test_embed_snippet():
    snippet = generate_embed_snippet(CONFIG_ID, APP_URL + "/")
    assert f'<div id="amp-widget-{CONFIG_ID}"></div>' in snippet
    assert f'<script src="{APP_URL}/api/widget?config={CONFIG_ID}" async></script>' in snippet


def test_error_script_is_a_single_comment_line():
    body = error_script("Configuration\nnot found */ alert(1)")
    assert body == "// Error: Configuration not found */ alert(1)"
    assert "\n" not in body
