"""
Profile Provider - The external call that turns a profile URL into profile data.

Failures are raised with messages that the error classifier understands
("rate limit exceeded", "profile not found", ...).
"""

import asyncio
import hashlib
import random
import re
from datetime import datetime, timezone
from typing import Any, Protocol

import httpx
import structlog

from app.config import Settings, get_settings
from app.core.classification import ErrorType
from app.core.errors import ProfileExtractionError

logger = structlog.get_logger(__name__)

PROFILE_ID_PATTERNS = (
    re.compile(r"linkedin\.com/in/([^/?#]+)", re.IGNORECASE),
    re.compile(r"linkedin\.com/pub/[^/]+/[^/]+/[^/]+/([^/?#]+)", re.IGNORECASE),
    re.compile(r"linkedin\.com/pub/([^/?#]+)", re.IGNORECASE),
)


class ProviderError(Exception):
    """Raised by a provider when a profile cannot be fetched."""


class ProfileProvider(Protocol):
    """Anything that can fetch one profile."""

    async def fetch_profile(
        self, credential: str | None, profile_url: str
    ) -> dict[str, Any]: ...


def extract_profile_id(profile_url: str) -> str | None:
    """Get the public profile identifier from a profile URL."""
    for pattern in PROFILE_ID_PATTERNS:
        match = pattern.search(profile_url)
        if match:
            return match.group(1)
    return None


def _invalid_url(profile_url: str) -> ProfileExtractionError:
    return ProfileExtractionError(
        ErrorType.NOT_FOUND,
        "Profile URL is invalid, no profile identifier found",
        profile_url,
    )


def _localized(value: Any) -> str:
    if isinstance(value, dict):
        localized = value.get("localized") or {}
        return localized.get("en_US", "") if isinstance(localized, dict) else ""
    return value or ""


def _date_range(value: dict[str, Any] | None) -> str:
    if not value:
        return ""
    start = value.get("start") or {}
    end = value.get("end") or {}
    start_year = start.get("year", "")
    end_year = end.get("year", "Present") if end else "Present"
    return f"{start_year} - {end_year}" if start_year else ""


class HttpProfileProvider:
    """Fetches profiles from the provider's REST API."""

    STATUS_MESSAGES = {
        401: "unauthorized, access token expired",
        403: "access restricted",
        404: "profile not found",
        429: "rate limit exceeded",
    }

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        await self._client.aclose()

    async def _get(self, path: str, credential: str | None) -> httpx.Response:
        headers = {"X-Restli-Protocol-Version": "2.0.0"}
        if credential:
            headers["Authorization"] = f"Bearer {credential}"
        return await self._client.get(f"{self.base_url}{path}", headers=headers)

    async def _get_elements(self, path: str, credential: str | None) -> list[dict[str, Any]]:
        """Secondary lookups are best effort; a failed one yields no elements."""
        response = await self._get(path, credential)
        if not response.is_success:
            await logger.adebug(
                "provider_secondary_lookup_failed",
                path=path,
                status_code=response.status_code,
            )
            return []
        return response.json().get("elements", [])

    async def fetch_profile(
        self, credential: str | None, profile_url: str
    ) -> dict[str, Any]:
        profile_id = extract_profile_id(profile_url)
        if not profile_id:
            raise _invalid_url(profile_url)

        response = await self._get(f"/people/(id:{profile_id})", credential)
        if not response.is_success:
            message = self.STATUS_MESSAGES.get(
                response.status_code, "provider api error"
            )
            raise ProviderError(f"{message} (HTTP {response.status_code})")

        data = response.json()
        positions = await self._get_elements(f"/positions?person=(id:{profile_id})", credential)
        educations = await self._get_elements(f"/educations?person=(id:{profile_id})", credential)

        experience = [
            {
                "title": _localized(pos.get("title")),
                "company": _localized(pos.get("companyName")),
                "duration": _date_range(pos.get("dateRange")),
                "description": _localized(pos.get("description")),
            }
            for pos in positions
        ]
        education = [
            {
                "school": _localized(edu.get("schoolName")),
                "degree": _localized(edu.get("degreeName")),
                "field_of_study": _localized(edu.get("fieldOfStudy")),
            }
            for edu in educations
        ]

        return {
            "id": data.get("id", profile_id),
            "first_name": _localized(data.get("firstName")),
            "last_name": _localized(data.get("lastName")),
            "headline": _localized(data.get("headline")),
            "summary": _localized(data.get("summary")),
            "industry": data.get("industry", ""),
            "location": (data.get("location") or {}).get("name", ""),
            "public_profile_url": profile_url,
            "current_position": experience[0]["title"] if experience else "",
            "current_company": experience[0]["company"] if experience else "",
            "skills": [],
            "experience": experience,
            "education": education,
        }


class SimulatedProfileProvider:
    """
    Demo provider that fabricates a stable profile per URL.

    The profile content is seeded from the URL slug so repeated runs agree;
    whether an attempt fails is drawn from an unseeded generator.
    """

    INDUSTRIES = (
        "Technology", "Finance", "Healthcare", "Education", "Marketing",
        "Sales", "Engineering", "Consulting", "Media", "Non-profit",
    )
    FIRST_NAMES = (
        "Alex", "Jordan", "Taylor", "Morgan", "Casey", "Riley", "Jamie",
        "Avery", "Quinn", "Rowan", "Sam", "Dana",
    )
    LAST_NAMES = (
        "Smith", "Garcia", "Chen", "Okafor", "Novak", "Patel", "Silva",
        "Kim", "Moreau", "Haddad", "Larsen", "Rossi",
    )
    CITIES = (
        "Austin, TX", "Seattle, WA", "Boston, MA", "Denver, CO", "Chicago, IL",
        "New York, NY", "San Francisco, CA", "Atlanta, GA",
    )
    COMPANIES = (
        "Globex", "Initech", "Umbrella Analytics", "Stark Industries",
        "Wayne Enterprises", "Acme Corp", "Hooli", "Vandelay Industries",
    )
    SKILLS = (
        "Leadership", "Communication", "Project Management", "Python", "SQL",
        "Negotiation", "Financial Analysis", "SEO", "Machine Learning", "Agile",
    )
    UNIVERSITIES = (
        "Stanford University", "MIT", "University of Michigan", "Georgia Tech",
        "UC Berkeley", "Carnegie Mellon", "NYU", "University of Texas",
    )
    DEGREES = ("Bachelor of Science", "Bachelor of Arts", "Master of Science", "MBA", "PhD")
    FIELDS = ("Computer Science", "Business Administration", "Economics", "Marketing", "Finance")
    FAILURES = (
        "rate limit exceeded",
        "profile not found",
        "access restricted",
        "captcha challenge required",
    )

    def __init__(
        self,
        success_rate: float = 0.95,
        min_delay: float = 0.0,
        max_delay: float = 0.0,
        rng: random.Random | None = None,
    ) -> None:
        self.success_rate = success_rate
        self.min_delay = min_delay
        self.max_delay = max_delay
        self._rng = rng or random.Random()

    @staticmethod
    def _seed(slug: str) -> int:
        return int(hashlib.sha256(slug.encode("utf-8")).hexdigest()[:16], 16)

    def build_profile(self, profile_url: str) -> dict[str, Any]:
        slug = extract_profile_id(profile_url)
        if not slug:
            raise _invalid_url(profile_url)

        rng = random.Random(self._seed(slug))
        first_name = rng.choice(self.FIRST_NAMES)
        last_name = rng.choice(self.LAST_NAMES)
        industry = rng.choice(self.INDUSTRIES)
        years = rng.randint(1, 25)
        this_year = datetime.now(timezone.utc).year

        experience = []
        remaining = years
        for i in range(min(4, -(-years // 3))):
            if remaining <= 0:
                break
            span = min(remaining, rng.randint(1, 5))
            end_year = this_year - (years - remaining)
            experience.append(
                {
                    "title": rng.choice(("Analyst", "Manager", "Director", "Engineer", "Consultant")),
                    "company": rng.choice(self.COMPANIES),
                    "duration": f"{end_year - span} - {'Present' if i == 0 else end_year}",
                    "description": f"Led {industry.lower()} initiatives across {rng.randint(2, 9)} teams.",
                }
            )
            remaining -= span

        return {
            "id": slug,
            "first_name": first_name,
            "last_name": last_name,
            "headline": f"{'Senior ' if years >= 8 else ''}{industry} Professional",
            "summary": f"{industry} professional with {years}+ years of experience.",
            "industry": industry,
            "location": rng.choice(self.CITIES),
            "public_profile_url": profile_url,
            "current_position": experience[0]["title"] if experience else "",
            "current_company": experience[0]["company"] if experience else "",
            "skills": rng.sample(self.SKILLS, 5),
            "experience": experience,
            "education": [
                {
                    "school": rng.choice(self.UNIVERSITIES),
                    "degree": rng.choice(self.DEGREES),
                    "field_of_study": rng.choice(self.FIELDS),
                }
            ],
            "connections": rng.randint(50, 500),
        }

    async def fetch_profile(
        self, credential: str | None, profile_url: str
    ) -> dict[str, Any]:
        if self.max_delay > 0:
            await asyncio.sleep(self._rng.uniform(self.min_delay, self.max_delay))

        if self._rng.random() >= self.success_rate:
            raise ProviderError(f"Simulated provider error: {self._rng.choice(self.FAILURES)}")

        return self.build_profile(profile_url)


def create_provider(settings: Settings | None = None) -> ProfileProvider:
    """Build the provider selected by ``provider_mode``."""
    settings = settings or get_settings()

    if settings.provider_mode == "live":
        return HttpProfileProvider(
            settings.provider_base_url,
            timeout=settings.provider_timeout,
        )

    return SimulatedProfileProvider(
        success_rate=settings.simulated_success_rate,
        min_delay=settings.simulated_min_delay,
        max_delay=settings.simulated_max_delay,
    )
