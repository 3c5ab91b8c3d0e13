from pydantic import BaseModel, Field
from typing import Literal, Optional, List, Dict, Any, Union

IdType = Literal["email", "amperity_id", "cookie_id", "maid", "custom"]
WidgetType = Literal["hero_banner", "inline_block"]
AnimationType = Literal["none", "fade", "slide"]
LoadingBehavior = Literal["skeleton", "spinner", "none"]
TransformType = Literal["uppercase", "lowercase", "titlecase", "date_format"]
ConditionOperator = Literal[
    "equals", "contains", "greater_than", "less_than", "exists", "not_exists"]

# Values below end up inside the widget's stylesheet, so they are restricted
# to plain CSS tokens.
CSS_LENGTH = r"^(auto|\d+(\.\d+)?(px|%|em|rem|vw|vh)?)$"
CSS_COLOR = r"^(#[0-9a-fA-F]{3,8}|[a-zA-Z]{3,20}|rgba?\([0-9.,%\s]+\)|hsla?\([0-9.,%\s]+\))$"


# =============================================================================
# Profile API credentials
# =============================================================================

class ApiConfig(BaseModel):
    tenant_id: str
    api_endpoint: str
    bearer_token: str  # encrypted at rest
    id_type: IdType = "email"
    custom_id_field: Optional[str] = None


# =============================================================================
# Content
# =============================================================================

class FieldMapping(BaseModel):
    api_field: str
    display_name: str
    fallback_value: str = ""
    transform: Optional[TransformType] = None
    date_format: Optional[str] = None


class FieldCondition(BaseModel):
    """Declared per variant but never evaluated by the runtime."""
    field: str
    operator: ConditionOperator
    value: Optional[Union[str, int, float, bool]] = None


class CopyVariant(BaseModel):
    id: str
    headline: str  # supports {{field_name}} placeholders
    subheadline: Optional[str] = None
    body: Optional[str] = None
    conditions: List[FieldCondition] = Field(default_factory=list)


class ImageAsset(BaseModel):
    id: str
    url: str
    alt_text: str = ""
    unsplash_id: Optional[str] = None
    photographer: Optional[str] = None
    photographer_url: Optional[str] = None
    conditions: List[FieldCondition] = Field(default_factory=list)


class FallbackContent(BaseModel):
    headline: str
    subheadline: Optional[str] = None
    body: Optional[str] = None
    image_url: str = ""
    image_alt: str = ""


class PersonalizationStrategy(BaseModel):
    goal: str = ""
    fields_used: List[str] = Field(default_factory=list)
    field_mappings: Dict[str, FieldMapping] = Field(default_factory=dict)
    copy_variants: List[CopyVariant] = Field(default_factory=list)
    image_assets: List[ImageAsset] = Field(default_factory=list)
    fallback_content: FallbackContent


# =============================================================================
# Widget & identity
# =============================================================================

class WidgetConfig(BaseModel):
    type: WidgetType = "inline_block"
    width: str = Field(default="100%", pattern=CSS_LENGTH)
    height: str = Field(default="auto", pattern=CSS_LENGTH)
    max_width: int = Field(default=1200, ge=0)
    border_radius: int = Field(default=8, ge=0)
    background_color: str = Field(default="#ffffff", pattern=CSS_COLOR)
    text_color: str = Field(default="#111111", pattern=CSS_COLOR)
    cta_text: str = "Learn more"
    cta_url: str = "#"
    animation: AnimationType = "fade"
    loading_behavior: LoadingBehavior = "skeleton"


class IdentityConfig(BaseModel):
    data_layer_path: Optional[str] = None  # e.g. "dataLayer.user.email"
    static_identity: Optional[str] = None  # demo mode
    allowed_domains: List[str] = Field(default_factory=lambda: ["*"])
    id_type: Optional[IdType] = None


class PersonalizationConfig(BaseModel):
    id: str  # cfg_[a-f0-9]{12}
    created_at: str
    updated_at: str
    api_config: ApiConfig
    personalization: PersonalizationStrategy
    widget_config: WidgetConfig
    identity_config: IdentityConfig = Field(default_factory=IdentityConfig)


# =============================================================================
# API requests / responses
# =============================================================================

class CreateConfigRequest(BaseModel):
    api_config: ApiConfig
    personalization: PersonalizationStrategy
    widget_config: WidgetConfig = Field(default_factory=WidgetConfig)
    identity_config: Optional[IdentityConfig] = None


class UpdateConfigRequest(BaseModel):
    api_config: Optional[ApiConfig] = None
    personalization: Optional[PersonalizationStrategy] = None
    widget_config: Optional[WidgetConfig] = None
    identity_config: Optional[IdentityConfig] = None


class CreateConfigResponse(BaseModel):
    config_id: str
    snippet: str
    preview_url: str


class ProfileLookupResponse(BaseModel):
    personalization_data: Dict[str, Any] = Field(default_factory=dict)
    has_identity: bool = False


class ConnectionTestRequest(BaseModel):
    tenant_id: str
    api_endpoint: str
    bearer_token: str
    id_type: IdType = "email"
    custom_id_field: Optional[str] = None
    test_value: str


class ConnectionTestResponse(BaseModel):
    success: bool
    field_count: Optional[int] = None
    sample_fields: Optional[List[str]] = None
    error: Optional[str] = None


class CopyField(BaseModel):
    name: str
    description: str = ""
    sample_value: str = ""


class GenerateCopyRequest(BaseModel):
    fields: List[CopyField] = Field(default_factory=list)
    goal: str = ""
    brand_name: Optional[str] = None
    tone: Optional[str] = None


class GenerateCopyResponse(BaseModel):
    headlines: List[str] = Field(default_factory=list)
    subheadlines: List[str] = Field(default_factory=list)
    cta_suggestions: List[str] = Field(default_factory=list)


class BatchLookupRequest(BaseModel):
    api_config: ApiConfig
    ids: List[str] = Field(default_factory=list)


class BatchLookupResult(BaseModel):
    id: str
    profile: Optional[Dict[str, Any]] = None


class BatchLookupResponse(BaseModel):
    profiles: List[Optional[Dict[str, Any]]] = Field(default_factory=list)
    results: List[BatchLookupResult] = Field(default_factory=list)


ImageOrientation = Literal["landscape", "portrait", "squarish"]


class SearchImagesRequest(BaseModel):
    query: str = ""
    orientation: ImageOrientation = "landscape"
    count: int = Field(default=8, ge=1, le=30)


class StockImage(BaseModel):
    id: str
    url: str
    thumb_url: str
    alt_description: str
    photographer: str
    photographer_url: str
    download_url: str


class SearchImagesResponse(BaseModel):
    images: List[StockImage] = Field(default_factory=list)
