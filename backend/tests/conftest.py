import httpx
import pytest
from cryptography.fernet import Fernet
from fastapi.testclient import TestClient

from amp_widget.image_search import ImageSearchClient
from amp_widget.main import app, get_image_search_client, get_profile_client, get_store
from amp_widget.schemas import (
    ApiConfig,
    ConnectionTestResponse,
    CopyVariant,
    CreateConfigRequest,
    FallbackContent,
    IdentityConfig,
    ImageAsset,
    PersonalizationConfig,
    PersonalizationStrategy,
    WidgetConfig,
)
from amp_widget.store import ConfigStore, CredentialCipher

CONFIG_ID = "cfg_abc123def456"


def make_strategy(**overrides) -> PersonalizationStrategy:
    values = dict(
        goal="Welcome back returning customers",
        fields_used=["given_name", "loyalty_tier"],
        copy_variants=[
            CopyVariant(
                id="v1",
                headline="Welcome back, {{given_name}}!",
                subheadline="You're a {{loyalty_tier}} member",
            ),
        ],
        image_assets=[
            ImageAsset(id="img1", url="https://images.example.com/hero.jpg", alt_text="Beach at sunset"),
        ],
        fallback_content=FallbackContent(
            headline="Welcome to Acme",
            subheadline="Find something you love",
            image_url="https://images.example.com/fallback.jpg",
            image_alt="Storefront",
        ),
    )
    values.update(overrides)
    return PersonalizationStrategy(**values)


def make_create_request(**overrides) -> CreateConfigRequest:
    values = dict(
        api_config=ApiConfig(
            tenant_id="acme", api_endpoint="web-profiles",
            bearer_token="secret-token", id_type="email"),
        personalization=make_strategy(),
        widget_config=WidgetConfig(
            type="hero_banner", cta_text="Shop now",
            cta_url="https://acme.example.com/shop"),
    )
    values.update(overrides)
    return CreateConfigRequest(**values)


def make_config(**overrides) -> PersonalizationConfig:
    request = make_create_request()
    values = dict(
        id=CONFIG_ID,
        created_at="2026-01-01T00:00:00+00:00",
        updated_at="2026-01-01T00:00:00+00:00",
        api_config=request.api_config,
        personalization=request.personalization,
        widget_config=request.widget_config,
        identity_config=IdentityConfig(),
    )
    values.update(overrides)
    return PersonalizationConfig(**values)


class FakeProfileClient:
    """Stands in for the tenant profile API."""

    def __init__(self, profiles=None, error=None):
        self.profiles = profiles or {}
        self.error = error
        self.calls = []

    async def lookup_profile(self, api_config, id_value):
        self.calls.append((api_config, id_value))
        if self.error is not None:
            raise self.error
        return self.profiles.get(id_value)

    async def lookup_profiles(self, api_config, id_values):
        return [{"id": id_value, "profile": await self.lookup_profile(api_config, id_value)}
                for id_value in id_values]

    async def test_connection(self, api_config, test_value):
        self.calls.append((api_config, test_value))
        return ConnectionTestResponse(success=True, field_count=2, sample_fields=["given_name", "email"])


@pytest.fixture
def cipher():
    return CredentialCipher(Fernet.generate_key().decode("ascii"))


@pytest.fixture
def store(cipher):
    return ConfigStore(cipher=cipher)


@pytest.fixture
def profile_client():
    return FakeProfileClient(profiles={
        "test@example.com": {"given_name": "Alex", "loyalty_tier": "Gold", "ssn": "000-00-0000"},
        "empty@example.com": {"ssn": "000-00-0000"},
    })


@pytest.fixture
def client(store, profile_client, image_search_client):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_profile_client] = lambda: profile_client
    app.dependency_overrides[get_image_search_client] = lambda: image_search_client
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


UNSPLASH_PHOTO = {
    "id": "photo-1",
    "alt_description": None,
    "description": "Sunset over the bay",
    "urls": {
        "regular": "https://images.unsplash.com/photo-1?w=1080",
        "thumb": "https://images.unsplash.com/photo-1?w=200",
        "full": "https://images.unsplash.com/photo-1",
    },
    "user": {"name": "Sam Lee", "links": {"html": "https://unsplash.com/@samlee"}},
}


@pytest.fixture
def unsplash_requests():
    return []


@pytest.fixture
def image_search_client(unsplash_requests):
    def handler(request):
        unsplash_requests.append(request)
        return httpx.Response(200, json={"results": [UNSPLASH_PHOTO]})

    return ImageSearchClient(access_key="test-key", transport=httpx.MockTransport(handler))
