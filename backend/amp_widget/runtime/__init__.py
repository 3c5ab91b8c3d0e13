from .fetcher import CompletionSlot, FetchOutcome, FetchResult, PersonalizationFetcher
from .identity import Identity, get_path, resolve_identity
from .placeholders import expand_placeholders
from .renderer import WidgetRenderer, container_id_for, safe_url
from .selector import SelectedContent, select_content
from .widget import LifecycleState, PageContext, WidgetRuntime

__all__ = [
    "CompletionSlot",
    "FetchOutcome",
    "FetchResult",
    "Identity",
    "LifecycleState",
    "PageContext",
    "PersonalizationFetcher",
    "SelectedContent",
    "WidgetRenderer",
    "WidgetRuntime",
    "container_id_for",
    "expand_placeholders",
    "get_path",
    "resolve_identity",
    "safe_url",
    "select_content",
]
