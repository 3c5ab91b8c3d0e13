import re
from typing import Optional

import httpx
from fastapi import Depends, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, ORJSONResponse

from .errors import ConfigNotFoundError, CopyGenerationError, ImageSearchError
from .generator import error_script, generate_embed_snippet, generate_widget_code
from .image_search import ImageSearchClient
from .llm_client import generate_copy_with_openai
from .logger import logger
from .preview import render_preview
from .profile_client import ProfileClient, extract_personalization_data
from .schemas import (
    ApiConfig,
    BatchLookupRequest,
    BatchLookupResponse,
    ConnectionTestRequest,
    ConnectionTestResponse,
    CreateConfigRequest,
    CreateConfigResponse,
    GenerateCopyRequest,
    GenerateCopyResponse,
    ProfileLookupResponse,
    SearchImagesRequest,
    SearchImagesResponse,
    UpdateConfigRequest,
)
from .settings import settings
from .store import ConfigStore

JS_MEDIA_TYPE = "application/javascript"
WIDGET_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}
MAX_BATCH_IDS = 15

# Routes embedded on customer sites answer CORS with WIDGET_CORS_HEADERS.
PUBLIC_WIDGET_PATH = re.compile(r"^/api/(widget|profiles/[^/]+/lookup)/?$")


class AdminCORSMiddleware(CORSMiddleware):
    """CORS for the admin API only; public widget routes bypass it."""

    async def __call__(self, scope, receive, send):
        if scope["type"] == "http" and PUBLIC_WIDGET_PATH.match(scope["path"]):
            await self.app(scope, receive, send)
            return
        await super().__call__(scope, receive, send)


app = FastAPI(title="Personalization Widget Backend",
              default_response_class=ORJSONResponse)

app.add_middleware(
    AdminCORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_store: Optional[ConfigStore] = None


def get_store() -> ConfigStore:
    global _store
    if _store is None:
        _store = ConfigStore(settings.config_store_path or None)
    return _store


def get_profile_client() -> ProfileClient:
    return ProfileClient()


def get_image_search_client() -> ImageSearchClient:
    return ImageSearchClient()


def public_base_url(request: Request) -> str:
    return settings.app_url or str(request.base_url).rstrip("/")


def error_response(message: str, status_code: int) -> ORJSONResponse:
    return ORJSONResponse({"error": message}, status_code=status_code)


@app.exception_handler(ConfigNotFoundError)
async def config_not_found_handler(request: Request, exc: ConfigNotFoundError):
    logger.info(f"{request.method} {request.url.path}: {exc}")
    return error_response("Configuration not found", 404)


@app.get("/health")
def health():
    return {"ok": True}


# =============================================================================
# Widget runtime endpoints
# =============================================================================

@app.get("/api/widget")
def widget_script(request: Request, config: Optional[str] = None,
                  store: ConfigStore = Depends(get_store)):
    if not config:
        return Response(error_script("Missing config parameter"),
                        status_code=400, media_type=JS_MEDIA_TYPE)
    try:
        record = store.get_config(config)
        if record is None:
            return Response(error_script("Configuration not found"),
                            status_code=404, media_type=JS_MEDIA_TYPE)
        code = generate_widget_code(record, public_base_url(request))
    except Exception as e:
        logger.error(f"Error serving widget {config}: {e}")
        return Response(error_script("Failed to load widget"),
                        status_code=500, media_type=JS_MEDIA_TYPE)

    headers = {"Cache-Control": f"public, max-age={settings.widget_cache_max_age}"}
    headers.update(WIDGET_CORS_HEADERS)
    return Response(code, media_type=JS_MEDIA_TYPE, headers=headers)


@app.get("/api/profiles/{config_id}/lookup")
async def profile_lookup(config_id: str, id_value: Optional[str] = None,
                         store: ConfigStore = Depends(get_store),
                         client: ProfileClient = Depends(get_profile_client)):
    empty = ProfileLookupResponse().model_dump()
    if not id_value:
        return ORJSONResponse(empty, headers=WIDGET_CORS_HEADERS)

    try:
        config = store.get_config(config_id, include_credentials=True)
        if config is None:
            logger.warning(f"Lookup for unknown configuration {config_id}")
            return ORJSONResponse(empty, headers=WIDGET_CORS_HEADERS)
        profile = await client.lookup_profile(config.api_config, id_value)
        result = extract_personalization_data(
            profile, config.personalization.fields_used)
    except Exception as e:
        # The widget treats every failure as "no data"; never surface a 5xx.
        logger.error(f"Error looking up profile for {config_id}: {e}")
        return ORJSONResponse(empty, headers=WIDGET_CORS_HEADERS)

    return ORJSONResponse(result.model_dump(), headers=WIDGET_CORS_HEADERS)


@app.options("/api/widget")
@app.options("/api/profiles/{config_id}/lookup")
def widget_preflight():
    return Response(status_code=204, headers=WIDGET_CORS_HEADERS)


# =============================================================================
# Configuration management
# =============================================================================

@app.post("/api/configs", response_model=CreateConfigResponse)
def create_config(req: CreateConfigRequest, request: Request,
                  store: ConfigStore = Depends(get_store)):
    api = req.api_config
    if not (api.tenant_id and api.api_endpoint and api.bearer_token):
        return error_response("Missing required API configuration fields", 400)
    if not req.personalization.fields_used:
        return error_response("At least one personalization field is required", 400)

    config = store.create_config(req)
    base = public_base_url(request)
    return CreateConfigResponse(
        config_id=config.id,
        snippet=generate_embed_snippet(config.id, base),
        preview_url=f"{base}/preview/{config.id}",
    )


@app.get("/api/configs")
def list_configs(store: ConfigStore = Depends(get_store)):
    return {"configs": [c.model_dump(mode="json") for c in store.list_configs()]}


@app.get("/api/configs/{config_id}")
def get_config(config_id: str, store: ConfigStore = Depends(get_store)):
    return store.require_config(config_id).model_dump(mode="json")


@app.put("/api/configs/{config_id}")
def update_config(config_id: str, updates: UpdateConfigRequest,
                  store: ConfigStore = Depends(get_store)):
    updated = store.update_config(config_id, updates)
    if updated is None:
        return error_response("Configuration not found", 404)
    return updated.model_dump(mode="json")


@app.delete("/api/configs/{config_id}")
def delete_config(config_id: str, store: ConfigStore = Depends(get_store)):
    if not store.delete_config(config_id):
        return error_response("Configuration not found", 404)
    return {"success": True}


# =============================================================================
# Authoring helpers
# =============================================================================

@app.post("/api/profiles/test", response_model=ConnectionTestResponse)
async def test_profile_connection(req: ConnectionTestRequest,
                                  client: ProfileClient = Depends(get_profile_client)):
    api_config = ApiConfig(**req.model_dump(exclude={"test_value"}))
    return await client.test_connection(api_config, req.test_value)


@app.post("/api/profiles/batch", response_model=BatchLookupResponse)
async def batch_profile_lookup(req: BatchLookupRequest,
                               client: ProfileClient = Depends(get_profile_client)):
    if not req.ids:
        return error_response("API config and IDs are required", 400)
    if len(req.ids) > MAX_BATCH_IDS:
        return error_response(f"Maximum {MAX_BATCH_IDS} IDs allowed per request", 400)
    results = await client.lookup_profiles(req.api_config, req.ids)
    return BatchLookupResponse(
        profiles=[r["profile"] for r in results],
        results=results,
    )


@app.post("/api/generate/copy", response_model=GenerateCopyResponse)
def generate_copy(req: GenerateCopyRequest):
    if not req.fields:
        return error_response("At least one field is required", 400)
    if not req.goal:
        return error_response("Goal is required", 400)
    try:
        return generate_copy_with_openai(req)
    except CopyGenerationError as e:
        logger.error(f"Error generating copy: {e}")
        return error_response("Copy generation failed. Please try again.", 500)


@app.post("/api/generate/images", response_model=SearchImagesResponse)
async def search_images(req: SearchImagesRequest,
                        client: ImageSearchClient = Depends(get_image_search_client)):
    if not req.query.strip():
        return error_response("Search query is required", 400)
    try:
        return await client.search(req)
    except ImageSearchError as e:
        logger.error(f"Error searching images: {e}")
        return error_response("Image search failed. Please try again.", 500)


@app.get("/preview/{config_id}", response_class=HTMLResponse)
async def preview(config_id: str, request: Request,
                  store: ConfigStore = Depends(get_store)):
    config = store.get_config(config_id)
    if config is None:
        return HTMLResponse("<p>Configuration not found</p>", status_code=404)
    html = await render_preview(
        config, str(request.url), transport=httpx.ASGITransport(app=request.app),
        app_url=public_base_url(request))
    return HTMLResponse(html)
