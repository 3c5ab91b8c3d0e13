from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..schemas import CopyVariant, ImageAsset, PersonalizationStrategy
from .placeholders import expand_placeholders


@dataclass(frozen=True)
class SelectedContent:
    headline: str
    subheadline: str = ""
    image_url: Optional[str] = None
    image_alt: str = ""
    personalized: bool = False


# Variant conditions are carried in the configuration but not evaluated:
# the first entry always wins.
def select_copy(variants: List[CopyVariant], data: Dict[str, Any]) -> Optional[CopyVariant]:
    return variants[0] if variants else None


def select_image(assets: List[ImageAsset], data: Dict[str, Any]) -> Optional[ImageAsset]:
    return assets[0] if assets else None


def select_content(
    strategy: PersonalizationStrategy,
    data: Optional[Dict[str, Any]],
    has_identity: bool,
) -> SelectedContent:
    """Pick the copy and image to render, expanding placeholders.

    Without an identity or with empty data the fallback content is used
    verbatim, before any variant is considered.
    """
    if has_identity and data:
        variant = select_copy(strategy.copy_variants, data)
        if variant is not None:
            image = select_image(strategy.image_assets, data)
            return SelectedContent(
                headline=expand_placeholders(variant.headline, data),
                subheadline=expand_placeholders(variant.subheadline or "", data),
                image_url=image.url if image else None,
                image_alt=image.alt_text if image else "",
                personalized=True,
            )

    fallback = strategy.fallback_content
    return SelectedContent(
        headline=fallback.headline,
        subheadline=fallback.subheadline or "",
        image_url=fallback.image_url or None,
        image_alt=fallback.image_alt,
    )
