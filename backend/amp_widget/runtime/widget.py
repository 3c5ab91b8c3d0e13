"""
Widget page-load lifecycle.

    init -> skeleton_rendered -> identity_resolved | no_identity
         -> fetch_pending -> fetch_resolved | fetch_failed | fetch_timeout
         -> content_selected -> final_rendered

Each run executes the sequence once; there are no retries.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from ..logger import logger
from ..schemas import PersonalizationConfig
from .fetcher import FetchOutcome, FetchResult, PersonalizationFetcher
from .identity import Identity, resolve_identity
from .renderer import WidgetRenderer, container_id_for
from .selector import SelectedContent, select_content


class LifecycleState(str, Enum):
    INIT = "init"
    SKELETON_RENDERED = "skeleton_rendered"
    IDENTITY_RESOLVED = "identity_resolved"
    NO_IDENTITY = "no_identity"
    FETCH_PENDING = "fetch_pending"
    FETCH_RESOLVED = "fetch_resolved"
    FETCH_FAILED = "fetch_failed"
    FETCH_TIMEOUT = "fetch_timeout"
    CONTENT_SELECTED = "content_selected"
    FINAL_RENDERED = "final_rendered"


_OUTCOME_STATES = {
    FetchOutcome.RESOLVED: LifecycleState.FETCH_RESOLVED,
    FetchOutcome.FAILED: LifecycleState.FETCH_FAILED,
    FetchOutcome.TIMEOUT: LifecycleState.FETCH_TIMEOUT,
}


@dataclass
class PageContext:
    """What the runtime can see of the host page."""
    url: str
    globals: Dict[str, Any] = field(default_factory=dict)
    element_ids: Set[str] = field(default_factory=set)


class WidgetRuntime:
    def __init__(self, config: PersonalizationConfig, fetcher: PersonalizationFetcher):
        self.config = config
        self.fetcher = fetcher
        self.history: List[LifecycleState] = [LifecycleState.INIT]
        self.identity: Optional[Identity] = None
        self.content: Optional[SelectedContent] = None
        self.renderer: Optional[WidgetRenderer] = None

    @property
    def state(self) -> LifecycleState:
        return self.history[-1]

    def _enter(self, state: LifecycleState) -> None:
        self.history.append(state)

    async def run(self, page: PageContext) -> Optional[WidgetRenderer]:
        if self.state is not LifecycleState.INIT:
            raise RuntimeError("widget runtime already ran")

        container_id = container_id_for(self.config.id)
        if container_id not in page.element_ids:
            logger.error(f"Container not found: {container_id}")
            return None

        renderer = WidgetRenderer(self.config.id, self.config.widget_config)
        self.renderer = renderer
        renderer.render_skeleton()
        self._enter(LifecycleState.SKELETON_RENDERED)

        self.identity = resolve_identity(page.url, page.globals, self.config.identity_config)
        if self.identity is None:
            self._enter(LifecycleState.NO_IDENTITY)
        else:
            self._enter(LifecycleState.IDENTITY_RESOLVED)
            self._enter(LifecycleState.FETCH_PENDING)

        result = await self.fetcher.fetch(self.identity)
        self.complete(result)
        return renderer

    def complete(self, result: FetchResult) -> bool:
        """Render the final content for a fetch result; later calls are no-ops."""
        if self.renderer is None or self.state is LifecycleState.FINAL_RENDERED:
            return False
        if result.outcome in _OUTCOME_STATES:
            self._enter(_OUTCOME_STATES[result.outcome])

        self.content = select_content(
            self.config.personalization, result.data, result.has_identity)
        self._enter(LifecycleState.CONTENT_SELECTED)
        self.renderer.render_content(self.content)
        self._enter(LifecycleState.FINAL_RENDERED)
        return True
