"""
Two-phase widget renderer.

Markup goes into a closed shadow root on the container element
``amp-widget-{config_id}`` so host page styles and widget styles stay
apart. Server-side this is expressed as a declarative shadow root
(``<template shadowrootmode="closed">``).
"""

import re
from enum import Enum
from typing import Optional

from jinja2 import DictLoader, Environment, select_autoescape

from ..logger import logger
from ..schemas import WidgetConfig
from .selector import SelectedContent
from .styles import build_stylesheet

CONTAINER_PREFIX = "amp-widget-"

_SCHEME = re.compile(r"^([a-zA-Z][a-zA-Z0-9+.-]*):")
_CONTROL = re.compile(r"[\x00-\x20\x7f]+")
SAFE_SCHEMES = {"http", "https", "mailto", "tel"}

TEMPLATES = {
    "skeleton.html": """\
{% if loading_behavior == "spinner" %}
<div class="amp-widget amp-widget--{{ widget_type }}"><div class="amp-widget__spinner"></div></div>
{% else %}
<div class="amp-widget amp-widget--{{ widget_type }}">
{% if widget_type == "hero_banner" %}
<div class="amp-widget__image amp-widget__skeleton"></div>
{% endif %}
<div class="amp-widget__content">
<div class="amp-widget__headline amp-widget__skeleton amp-widget__skeleton--headline"></div>
<div class="amp-widget__subheadline amp-widget__skeleton amp-widget__skeleton--subheadline"></div>
</div>
</div>
{% endif %}
""",
    "content.html": """\
<div class="amp-widget amp-widget--{{ widget_type }}{% if animation != "none" %} amp-widget--{{ animation }}{% endif %}">
{% if widget_type == "hero_banner" and image_url %}
<img class="amp-widget__image" src="{{ image_url }}" alt="{{ content.image_alt }}">
{% endif %}
<div class="amp-widget__content">
<h2 class="amp-widget__headline">{{ content.headline }}</h2>
{% if content.subheadline %}
<p class="amp-widget__subheadline">{{ content.subheadline }}</p>
{% endif %}
<a class="amp-widget__cta" href="{{ cta_url }}">{{ cta_text }}</a>
</div>
</div>
""",
    "container.html": """\
<div id="{{ container_id }}"><template shadowrootmode="closed"><style>{{ stylesheet|safe }}</style><div class="amp-widget-root">{{ body|safe }}</div></template></div>
""",
}

_env = Environment(
    loader=DictLoader(TEMPLATES),
    autoescape=select_autoescape(default=True, default_for_string=True),
    trim_blocks=True,
    lstrip_blocks=True,
)


def container_id_for(config_id: str) -> str:
    return f"{CONTAINER_PREFIX}{config_id}"


def safe_url(url: Optional[str], default: str = "#") -> str:
    """Allow relative and http(s)/mailto/tel URLs; anything else becomes the default."""
    if not url:
        return default
    match = _SCHEME.match(_CONTROL.sub("", url))
    if match and match.group(1).lower() not in SAFE_SCHEMES:
        return default
    return url


class RenderPhase(str, Enum):
    EMPTY = "empty"
    SKELETON = "skeleton"
    FINAL = "final"


class WidgetRenderer:
    def __init__(self, config_id: str, widget_config: WidgetConfig):
        self.container_id = container_id_for(config_id)
        self.widget_config = widget_config
        self.phase = RenderPhase.EMPTY
        self._body = ""

    def render_skeleton(self) -> None:
        if self.phase is not RenderPhase.EMPTY:
            return
        if self.widget_config.loading_behavior == "none":
            return
        self._body = _env.get_template("skeleton.html").render(
            widget_type=self.widget_config.type,
            loading_behavior=self.widget_config.loading_behavior,
        )
        self.phase = RenderPhase.SKELETON

    def render_content(self, content: SelectedContent) -> bool:
        """Replace the skeleton with final markup. Only the first call renders."""
        if self.phase is RenderPhase.FINAL:
            logger.debug(f"{self.container_id} already rendered; ignoring")
            return False
        cfg = self.widget_config
        self._body = _env.get_template("content.html").render(
            widget_type=cfg.type,
            animation=cfg.animation,
            content=content,
            image_url=safe_url(content.image_url, default=""),
            cta_url=safe_url(cfg.cta_url),
            cta_text=cfg.cta_text,
        )
        self.phase = RenderPhase.FINAL
        return True

    @property
    def body(self) -> str:
        return self._body

    def markup(self) -> str:
        """The container element with its shadow root, ready to embed in a page."""
        return _env.get_template("container.html").render(
            container_id=self.container_id,
            stylesheet=build_stylesheet(self.widget_config),
            body=self._body,
        )
