"""Tests for the profile providers."""

import random

import httpx
import pytest

from app.core.classification import ErrorType, classify_error
from app.core.errors import ProfileExtractionError
from app.services.provider import (
    HttpProfileProvider,
    ProviderError,
    SimulatedProfileProvider,
    create_provider,
    extract_profile_id,
)


def http_provider(handler) -> HttpProfileProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpProfileProvider("https://api.example.test/v2", client=client)


def test_extract_profile_id():
    assert extract_profile_id("https://www.linkedin.com/in/jane-doe/") == "jane-doe"
    assert extract_profile_id("https://linkedin.com/in/jane-doe?trk=x") == "jane-doe"
    assert extract_profile_id("https://example.com/jane") is None


async def test_http_provider_maps_payload():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["Authorization"] == "Bearer token-1"
        if request.url.path.endswith("/positions"):
            return httpx.Response(
                200,
                json={
                    "elements": [
                        {
                            "title": {"localized": {"en_US": "Engineer"}},
                            "companyName": {"localized": {"en_US": "Acme"}},
                            "dateRange": {"start": {"year": 2019}},
                        }
                    ]
                },
            )
        if request.url.path.endswith("/educations"):
            return httpx.Response(500)
        return httpx.Response(
            200,
            json={
                "id": "abc",
                "firstName": {"localized": {"en_US": "Jane"}},
                "lastName": {"localized": {"en_US": "Doe"}},
                "location": {"name": "Lisbon"},
            },
        )

    provider = http_provider(handler)
    profile = await provider.fetch_profile("token-1", "https://www.linkedin.com/in/jane-doe")
    await provider.close()

    assert profile["first_name"] == "Jane"
    assert profile["location"] == "Lisbon"
    assert profile["current_company"] == "Acme"
    assert profile["experience"][0]["duration"] == "2019 - Present"
    assert profile["education"] == []


@pytest.mark.parametrize(
    "status_code, error_type",
    [
        (403, ErrorType.ACCESS_RESTRICTED),
        (404, ErrorType.NOT_FOUND),
        (429, ErrorType.RATE_LIMIT),
        (401, ErrorType.ACCESS_RESTRICTED),
        (502, ErrorType.UNKNOWN),
    ],
)
async def test_http_errors_classify(status_code, error_type):
    provider = http_provider(lambda request: httpx.Response(status_code))

    with pytest.raises(ProviderError) as exc_info:
        await provider.fetch_profile(None, "https://www.linkedin.com/in/jane-doe")

    assert f"(HTTP {status_code})" in str(exc_info.value)
    assert classify_error(exc_info.value) is error_type


async def test_invalid_url_is_not_found():
    provider = http_provider(lambda request: httpx.Response(200, json={}))

    with pytest.raises(ProfileExtractionError) as exc_info:
        await provider.fetch_profile(None, "https://example.com/nobody")

    assert exc_info.value.error_type is ErrorType.NOT_FOUND


def test_simulated_profile_is_stable_per_url():
    provider = SimulatedProfileProvider()
    url = "https://www.linkedin.com/in/stable-person"

    assert provider.build_profile(url) == provider.build_profile(url)
    assert provider.build_profile(url)["id"] == "stable-person"


async def test_simulated_failures_are_classifiable():
    provider = SimulatedProfileProvider(success_rate=0.0, rng=random.Random(7))

    with pytest.raises(ProviderError) as exc_info:
        await provider.fetch_profile(None, "https://www.linkedin.com/in/anyone")

    assert classify_error(exc_info.value) in set(ErrorType)


def test_create_provider_follows_mode(settings):
    assert isinstance(create_provider(settings), SimulatedProfileProvider)

    settings.provider_mode = "live"
    assert isinstance(create_provider(settings), HttpProfileProvider)
