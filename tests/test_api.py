"""
Tests for the cron trigger endpoints.
"""
import json

import pytest
from fastapi.testclient import TestClient

from flaneur.api.v1.endpoints.cron import get_context_factory
from flaneur.core.config import get_settings
from flaneur.core.exceptions import ConfigurationException
from flaneur.core.security import is_authorized
from flaneur.main import app
from flaneur.pipeline.context import PipelineContext
from tests.conftest import FakeContentStore, FakeTextGenerator, TRIBECA, make_brief, make_context, make_settings

SECRET = "s3cret"


@pytest.fixture
def cron_store():
    store = FakeContentStore()
    store.add_locale(TRIBECA)
    store.add_brief(make_brief())
    return store


@pytest.fixture
def generator():
    return FakeTextGenerator()


@pytest.fixture
def client(cron_store, generator):
    settings = make_settings(environment="production", cron_secret=SECRET)

    async def fake_factory(settings, require_generation=True):
        return make_context(cron_store, generator, settings=settings)

    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_context_factory] = lambda: fake_factory
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth(secret=SECRET):
    return {"Authorization": f"Bearer {secret}"}


class TestAuthorisation:
    """Test cron request authorisation."""

    def test_rules(self):
        settings = make_settings(environment="production", cron_secret=SECRET)
        assert is_authorized(settings, SECRET, None)
        assert is_authorized(settings, None, "1")
        assert not is_authorized(settings, "wrong", None)
        assert not is_authorized(settings, None, "0")
        assert not is_authorized(make_settings(environment="production"), "", None)
        assert is_authorized(make_settings(environment="development"), None, None)

    def test_missing_credentials_rejected(self, client, generator):
        response = client.get("/v1/cron/enrich-briefs")

        assert response.status_code == 401
        body = response.json()
        assert body["success"] is False
        assert body["error"]["error"] == "authentication_error"
        assert generator.calls == []

    def test_wrong_secret_rejected(self, client):
        response = client.get("/v1/cron/enrich-briefs", headers=auth("nope"))
        assert response.status_code == 401

    def test_scheduler_header_accepted(self, client):
        response = client.get("/v1/cron/enrich-briefs", headers={"x-vercel-cron": "1"})
        assert response.status_code == 200


class TestCronEndpoints:
    """Test the routes return run summaries."""

    def test_enrich_briefs(self, client, cron_store):
        response = client.get("/v1/cron/enrich-briefs", headers=auth())

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["briefs_enriched"] == 1
        assert data["brief_articles_created"] == 1
        assert "b1" in cron_store.brief_updates
        assert cron_store.executions[0].job_name == "enrich-briefs"

    def test_test_mode_targets_one_brief(self, client, cron_store):
        response = client.get("/v1/cron/enrich-briefs", params={"test": "b1"}, headers=auth())

        assert response.status_code == 200
        assert response.json()["briefs_enriched"] == 1
        assert cron_store.executions == []

    def test_batch_is_validated(self, client):
        response = client.get("/v1/cron/enrich-briefs", params={"batch": 0}, headers=auth())
        assert response.status_code == 422
        assert response.json()["error"]["error"] == "validation_error"

    def test_auction_sample(self, client, cron_store, generator):
        generator.default = json.dumps({"headline": "Sotheby's Evening Sale", "body": "Marquee week begins."})

        response = client.get("/v1/cron/sync-auction-calendar", params={"sample": "true"}, headers=auth())

        assert response.status_code == 200
        data = response.json()
        assert data["articles_created"] == 3
        assert data["breakdown"]["nyc-tribeca"]["articles_created"] == 3
        assert cron_store.executions == []

    def test_property_watch(self, client, cron_store):
        response = client.get("/v1/cron/process-property-watch", headers=auth())

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["sightings"]["pending"] == 0


class TestConfigurationErrors:
    """Test missing credentials surface as 500."""

    def test_missing_supabase_is_500(self):
        settings = make_settings(environment="production", cron_secret=SECRET, supabase_url=None)
        app.dependency_overrides[get_settings] = lambda: settings
        app.dependency_overrides[get_context_factory] = lambda: PipelineContext.create
        try:
            response = TestClient(app).get("/v1/cron/enrich-briefs", headers=auth())
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert body["error"]["error"] == "configuration_error"
        assert body["error"]["details"]["missing"] == ["SUPABASE_URL"]

    def test_factory_error_is_500(self):
        async def broken_factory(settings, require_generation=True):
            raise ConfigurationException("Missing required configuration: GEMINI_API_KEY")

        app.dependency_overrides[get_settings] = lambda: make_settings(environment="development")
        app.dependency_overrides[get_context_factory] = lambda: broken_factory
        try:
            response = TestClient(app).get("/v1/cron/sync-residency-radar")
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 500
        assert response.json()["error"]["message"].endswith("GEMINI_API_KEY")
