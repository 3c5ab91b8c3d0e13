"""Server-side widget preview.

Runs the widget lifecycle in-process against the service's own lookup
endpoint and returns a page with the final markup already in place.
"""

from typing import Any, Dict, Optional

import httpx
from jinja2 import Environment, select_autoescape

from .generator import generate_embed_snippet
from .logger import logger
from .runtime import PageContext, PersonalizationFetcher, WidgetRuntime, container_id_for
from .schemas import PersonalizationConfig

PREVIEW_BASE_URL = "http://preview.internal"

PAGE_TEMPLATE = """\
<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>Widget preview · {{ config_id }}</title>
</head>
<body>
<main>
{{ widget_markup|safe }}
</main>
<section>
<h3>Embed code</h3>
<pre><code>{{ snippet }}</code></pre>
<p>Lifecycle: {{ history|join(" → ") }}</p>
</section>
</body>
</html>
"""

_env = Environment(autoescape=select_autoescape(default_for_string=True))


async def render_preview(
    config: PersonalizationConfig,
    page_url: str,
    transport: httpx.AsyncBaseTransport,
    page_globals: Optional[Dict[str, Any]] = None,
    app_url: Optional[str] = None,
) -> str:
    fetcher = PersonalizationFetcher(PREVIEW_BASE_URL, config.id, transport=transport)
    runtime = WidgetRuntime(config, fetcher)
    page = PageContext(
        url=page_url,
        globals=page_globals or {},
        element_ids={container_id_for(config.id)},
    )
    renderer = await runtime.run(page)
    logger.info(f"Preview for {config.id} finished in state {runtime.state.value}")

    return _env.from_string(PAGE_TEMPLATE).render(
        config_id=config.id,
        widget_markup=renderer.markup() if renderer else "",
        snippet=generate_embed_snippet(config.id, app_url),
        history=[state.value for state in runtime.history],
    )
