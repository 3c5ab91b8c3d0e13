"""
Widget code generator.

Turns a stored configuration into a standalone browser script. All
configuration values are embedded through ``to_js_literal`` as a single
data object; nothing from the configuration is ever spliced into the code
itself.
"""

from typing import Any
from urllib.parse import quote

import orjson

from .runtime.renderer import container_id_for
from .runtime.styles import build_stylesheet
from .schemas import PersonalizationConfig
from .settings import settings

DATA_SENTINEL = "__WIDGET_DATA__"

# Characters that are legal in JSON but can end a <script> element, open an
# HTML comment, or terminate a JS string literal in older engines.
_JS_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "'": "\\u0027",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


def to_js_literal(value: Any) -> str:
    """Serialize a value as a JS expression that is safe inside <script>."""
    text = orjson.dumps(value).decode("utf-8")
    for char, escaped in _JS_ESCAPES.items():
        text = text.replace(char, escaped)
    return text


def error_script(message: str) -> str:
    """An inert script body carrying an error message as a comment."""
    return "// Error: " + " ".join(message.split())


def generate_embed_snippet(config_id: str, app_url: str | None = None) -> str:
    base = (settings.app_url if app_url is None else app_url).rstrip("/")
    return (
        "<!-- Amperity Personalization Widget -->\n"
        f'<div id="{container_id_for(config_id)}"></div>\n'
        f'<script src="{base}/api/widget?config={quote(config_id, safe="")}" async></script>'
    )


def widget_data(config: PersonalizationConfig, app_url: str) -> dict:
    personalization = config.personalization
    identity = config.identity_config
    return {
        "configId": config.id,
        "containerId": container_id_for(config.id),
        "apiBase": app_url.rstrip("/"),
        "timeoutMs": settings.lookup_timeout_ms,
        "idType": identity.id_type or config.api_config.id_type,
        "widget": config.widget_config.model_dump(mode="json"),
        "fallback": personalization.fallback_content.model_dump(mode="json"),
        "copyVariants": [v.model_dump(mode="json") for v in personalization.copy_variants],
        "imageAssets": [a.model_dump(mode="json") for a in personalization.image_assets],
        "fieldsUsed": list(personalization.fields_used),
        "identity": {
            "data_layer_path": identity.data_layer_path,
            "static_identity": identity.static_identity,
        },
        "styles": build_stylesheet(config.widget_config),
    }


def generate_widget_code(config: PersonalizationConfig, app_url: str) -> str:
    """Build the self-contained widget script for a configuration."""
    return WIDGET_RUNTIME_JS.replace(DATA_SENTINEL, to_js_literal(widget_data(config, app_url)), 1)


WIDGET_RUNTIME_JS = r"""(function () {
  'use strict';

  var W = __WIDGET_DATA__;
  var PLACEHOLDER = /\{\{\s*([^{}]*?)\s*\}\}/g;
  var MAX_PATH_DEPTH = 8;
  var SAFE_SCHEMES = ['http', 'https', 'mailto', 'tel'];
  var hasOwn = Object.prototype.hasOwnProperty;

  function log(message, detail) {
    if (window.console && console.error) {
      console.error('[Amperity Widget] ' + message, detail === undefined ? '' : detail);
    }
  }

  // Identity ---------------------------------------------------------------

  function getPath(root, path) {
    var parts = String(path).split('.');
    if (!path || parts.length > MAX_PATH_DEPTH) return undefined;
    var node = root;
    for (var i = 0; i < parts.length; i++) {
      if (node === null || node === undefined) return undefined;
      try {
        node = node[parts[i]];
      } catch (e) {
        return undefined;
      }
    }
    return node;
  }

  function scalar(value) {
    if ((typeof value === 'string' || typeof value === 'number') && value) {
      return String(value);
    }
    return null;
  }

  function resolveIdentity() {
    var params = null;
    try {
      params = new URLSearchParams(window.location.search);
    } catch (e) {
      params = null;
    }
    if (params) {
      if (params.has('amp_email')) {
        return { type: 'email', value: params.get('amp_email') };
      }
      if (params.has('amp_test') && params.has('amp_id')) {
        return { type: W.idType, value: params.get('amp_id') };
      }
    }

    var path = W.identity.data_layer_path;
    if (path && getPath(window, path.split('.')[0])) {
      var value = scalar(getPath(window, path));
      if (value) return { type: W.idType, value: value };
    }

    var globalIdentity = getPath(window, 'ampIdentity');
    var email = globalIdentity ? scalar(getPath(globalIdentity, 'email')) : null;
    if (email) return { type: 'email', value: email };

    if (W.identity.static_identity) {
      return { type: W.idType, value: W.identity.static_identity };
    }
    return null;
  }

  // Fetch ------------------------------------------------------------------

  function fetchPersonalizationData(identity, callback) {
    var settled = false;
    var timer = null;

    function complete(data, hasIdentity) {
      if (settled) return;
      settled = true;
      if (timer !== null) clearTimeout(timer);
      try {
        callback(data, hasIdentity);
      } catch (e) {
        log('Render failed:', e);
      }
    }

    if (!identity) {
      complete(null, false);
      return;
    }

    timer = setTimeout(function () { complete(null, false); }, W.timeoutMs);
    try {
      var xhr = new XMLHttpRequest();
      xhr.open('GET', W.apiBase + '/api/profiles/' + encodeURIComponent(W.configId) +
        '/lookup?id_value=' + encodeURIComponent(identity.value));
      xhr.timeout = W.timeoutMs;
      xhr.onload = function () {
        if (xhr.status !== 200) {
          complete(null, false);
          return;
        }
        var body;
        try {
          body = JSON.parse(xhr.responseText);
        } catch (e) {
          complete(null, false);
          return;
        }
        if (!body || typeof body !== 'object') {
          complete(null, false);
          return;
        }
        var data = body.personalization_data;
        complete(data && typeof data === 'object' ? data : null, !!body.has_identity);
      };
      xhr.onerror = xhr.ontimeout = xhr.onabort = function () { complete(null, false); };
      xhr.send();
    } catch (e) {
      complete(null, false);
    }
  }

  // Selection --------------------------------------------------------------

  function selectContent(variants, data) {
    return variants[0] || null;
  }

  function selectImage(assets, data) {
    return assets[0] || null;
  }

  function hasKeys(obj) {
    for (var key in obj) {
      if (hasOwn.call(obj, key)) return true;
    }
    return false;
  }

  function expand(text, data) {
    return String(text).replace(PLACEHOLDER, function (match, name) {
      var field = name.replace(/^\s+|\s+$/g, '');
      var value = hasOwn.call(data, field) ? data[field] : undefined;
      return value === undefined || value === null ? '' : String(value);
    });
  }

  function chooseContent(data, hasIdentity) {
    if (hasIdentity && data && hasKeys(data)) {
      var variant = selectContent(W.copyVariants, data);
      if (variant) {
        var image = selectImage(W.imageAssets, data);
        return {
          headline: expand(variant.headline, data),
          subheadline: variant.subheadline ? expand(variant.subheadline, data) : '',
          imageUrl: image ? image.url : null,
          imageAlt: image ? image.alt_text : ''
        };
      }
    }
    return {
      headline: W.fallback.headline,
      subheadline: W.fallback.subheadline || '',
      imageUrl: W.fallback.image_url || null,
      imageAlt: W.fallback.image_alt || ''
    };
  }

  // Rendering --------------------------------------------------------------

  function el(tag, className, text) {
    var node = document.createElement(tag);
    if (className) node.className = className;
    if (text !== undefined) node.textContent = text;
    return node;
  }

  function clear(node) {
    while (node.firstChild) node.removeChild(node.firstChild);
  }

  function safeUrl(url, fallback) {
    if (!url) return fallback;
    var match = /^([a-zA-Z][a-zA-Z0-9+.-]*):/.exec(String(url).replace(/[\u0000-\u0020\u007f]+/g, ''));
    if (match && SAFE_SCHEMES.indexOf(match[1].toLowerCase()) === -1) return fallback;
    return String(url);
  }

  function renderSkeleton(root) {
    var cfg = W.widget;
    if (cfg.loading_behavior === 'none') return;

    var box = el('div', 'amp-widget amp-widget--' + cfg.type);
    if (cfg.loading_behavior === 'spinner') {
      box.appendChild(el('div', 'amp-widget__spinner'));
    } else {
      if (cfg.type === 'hero_banner') {
        box.appendChild(el('div', 'amp-widget__image amp-widget__skeleton'));
      }
      var content = el('div', 'amp-widget__content');
      content.appendChild(el('div', 'amp-widget__headline amp-widget__skeleton amp-widget__skeleton--headline'));
      content.appendChild(el('div', 'amp-widget__subheadline amp-widget__skeleton amp-widget__skeleton--subheadline'));
      box.appendChild(content);
    }
    clear(root);
    root.appendChild(box);
  }

  var rendered = false;

  function renderContent(root, data, hasIdentity) {
    if (rendered) return;
    rendered = true;

    var cfg = W.widget;
    var chosen = chooseContent(data, hasIdentity);
    var className = 'amp-widget amp-widget--' + cfg.type;
    if (cfg.animation !== 'none') className += ' amp-widget--' + cfg.animation;

    var box = el('div', className);
    var imageUrl = safeUrl(chosen.imageUrl, '');
    if (cfg.type === 'hero_banner' && imageUrl) {
      var img = el('img', 'amp-widget__image');
      img.src = imageUrl;
      img.alt = chosen.imageAlt || '';
      box.appendChild(img);
    }
    var content = el('div', 'amp-widget__content');
    content.appendChild(el('h2', 'amp-widget__headline', chosen.headline));
    if (chosen.subheadline) {
      content.appendChild(el('p', 'amp-widget__subheadline', chosen.subheadline));
    }
    var cta = el('a', 'amp-widget__cta', cfg.cta_text);
    cta.href = safeUrl(cfg.cta_url, '#');
    content.appendChild(cta);
    box.appendChild(content);

    clear(root);
    root.appendChild(box);
  }

  // Bootstrap --------------------------------------------------------------

  function init() {
    var container = document.getElementById(W.containerId);
    if (!container) {
      log('Container not found:', W.containerId);
      return;
    }
    var shadow;
    try {
      shadow = container.attachShadow({ mode: 'closed' });
    } catch (e) {
      log('Cannot isolate container:', W.containerId);
      return;
    }
    var style = document.createElement('style');
    style.textContent = W.styles;
    shadow.appendChild(style);
    var root = el('div', 'amp-widget-root');
    shadow.appendChild(root);

    renderSkeleton(root);
    fetchPersonalizationData(resolveIdentity(), function (data, hasIdentity) {
      renderContent(root, data, hasIdentity);
    });
  }

  function boot() {
    try {
      init();
    } catch (e) {
      log('Initialization failed:', e);
    }
  }

  if (document.readyState === 'loading') {
    document.addEventListener('DOMContentLoaded', boot);
  } else {
    boot();
  }
})();
"""
