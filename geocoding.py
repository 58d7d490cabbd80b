"""
Geocoding with provider fallback.

Resolves a listing's address to coordinates using an ordered provider
chain:

  1. Google Geocoding API   (requires GOOGLE_MAPS_API_KEY, rooftop accuracy)
  2. OpenCage Geocoder      (requires OPENCAGE_API_KEY)
  3. Nominatim / OSM        (free, no key; always the final fallback)

Keyed providers are left out of the chain when no key is configured.
Each provider gets exactly one bounded request; any failure (network
error, timeout, non-OK status, empty result set, malformed payload)
moves on to the next provider.  The first structured success wins.

Results are cached per listing by an md5 hash of the four address fields.
When the hash matches the one stored at the last successful geocode and
coordinates already exist, no provider is called and nothing is written.
"""

import hashlib
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

import requests

from enrich_trace import get_trace
from enrichment_config import EnrichmentSettings

logger = logging.getLogger(__name__)

# Timeout in seconds for a single provider request.  A slow provider only
# costs this much before the chain moves on.
DEFAULT_TIMEOUT = 10


class GeocodeAccuracy(str, Enum):
    ROOFTOP = "rooftop"
    APPROXIMATE = "approximate"


class GeocodeSource(str, Enum):
    GOOGLE = "google"
    OPENCAGE = "opencage"
    NOMINATIM = "nominatim"


class GeocodingError(Exception):
    """Raised by a provider client when it cannot produce a usable result."""

    pass


@dataclass
class GeocodeResult:
    latitude: float
    longitude: float
    accuracy: GeocodeAccuracy
    source: GeocodeSource
    county: Optional[str] = None


@dataclass
class GeocodeOutcome:
    """What geocode_listing did for one listing.

    status is one of: "incomplete_address", "cache_hit", "resolved", "failed".
    """
    status: str
    result: Optional[GeocodeResult] = None
    address_hash: Optional[str] = None


# =============================================================================
# Provider clients
# =============================================================================

class BaseGeocoder:
    """Shared HTTP plumbing for provider clients."""

    source: GeocodeSource = None  # set by subclasses
    base_url: str = ""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT, user_agent: Optional[str] = None):
        self.timeout = timeout
        self.session = requests.Session()
        self.session.trust_env = False
        if user_agent:
            self.session.headers["User-Agent"] = user_agent

    @property
    def name(self) -> str:
        return self.source.value

    def _traced_get(self, params: dict):
        """GET with trace recording.  Returns decoded JSON.

        Raises GeocodingError on transport errors, HTTP errors and
        undecodable bodies.
        """
        t0 = time.time()
        trace = get_trace()
        try:
            response = self.session.get(self.base_url, params=params, timeout=self.timeout)
        except requests.Timeout as e:
            if trace:
                trace.record_provider_call(self.name, int((time.time() - t0) * 1000), 0, "timeout")
            raise GeocodingError(f"{self.name} timed out after {self.timeout}s") from e
        except requests.RequestException as e:
            if trace:
                trace.record_provider_call(self.name, int((time.time() - t0) * 1000), 0, "network_error")
            raise GeocodingError(f"{self.name} request failed: {e}") from e

        elapsed_ms = int((time.time() - t0) * 1000)
        if not response.ok:
            if trace:
                trace.record_provider_call(self.name, elapsed_ms, response.status_code, "http_error")
            raise GeocodingError(f"{self.name} returned HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            if trace:
                trace.record_provider_call(self.name, elapsed_ms, response.status_code, "bad_json")
            raise GeocodingError(f"{self.name} returned a non-JSON body") from e

        if trace:
            # Google reports a string status; OpenCage nests a dict, Nominatim has none.
            status = data.get("status") if isinstance(data, dict) else None
            trace.record_provider_call(
                self.name, elapsed_ms, response.status_code, status if isinstance(status, str) else "OK",
            )
        return data

    def geocode(self, address: str) -> GeocodeResult:
        raise NotImplementedError


class GoogleGeocoder(BaseGeocoder):
    """Google Geocoding API client."""

    source = GeocodeSource.GOOGLE
    base_url = "https://maps.googleapis.com/maps/api/geocode/json"

    def __init__(self, api_key: str, **kwargs):
        super().__init__(**kwargs)
        self.api_key = api_key

    def geocode(self, address: str) -> GeocodeResult:
        data = self._traced_get({"address": address, "key": self.api_key})

        if data.get("status") != "OK" or not data.get("results"):
            raise GeocodingError(f"Google geocoding failed: {data.get('status')}")

        try:
            result = data["results"][0]
            location = result["geometry"]["location"]
            lat, lng = float(location["lat"]), float(location["lng"])
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise GeocodingError("Google response missing geometry") from e

        location_type = (result["geometry"].get("location_type") or "").upper()
        accuracy = GeocodeAccuracy.ROOFTOP if location_type == "ROOFTOP" else GeocodeAccuracy.APPROXIMATE

        return GeocodeResult(
            latitude=lat,
            longitude=lng,
            accuracy=accuracy,
            source=self.source,
            county=self._county(result.get("address_components") or []),
        )

    @staticmethod
    def _county(components: list) -> Optional[str]:
        for component in components:
            if "administrative_area_level_2" in (component.get("types") or []):
                name = (component.get("long_name") or "").replace(" County", "").strip()
                return name or None
        return None


class OpenCageGeocoder(BaseGeocoder):
    """OpenCage Geocoder client (US results only)."""

    source = GeocodeSource.OPENCAGE
    base_url = "https://api.opencagedata.com/geocode/v1/json"

    def __init__(self, api_key: str, **kwargs):
        super().__init__(**kwargs)
        self.api_key = api_key

    def geocode(self, address: str) -> GeocodeResult:
        data = self._traced_get({
            "q": address,
            "key": self.api_key,
            "limit": 1,
            "countrycode": "us",
        })

        results = data.get("results") if isinstance(data, dict) else None
        if not results:
            raise GeocodingError("OpenCage returned no results")

        try:
            geometry = results[0]["geometry"]
            lat, lng = float(geometry["lat"]), float(geometry["lng"])
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise GeocodingError("OpenCage response missing geometry") from e

        components = results[0].get("components") or {}
        return GeocodeResult(
            latitude=lat,
            longitude=lng,
            accuracy=GeocodeAccuracy.APPROXIMATE,
            source=self.source,
            county=components.get("county") or None,
        )


class NominatimGeocoder(BaseGeocoder):
    """OpenStreetMap Nominatim search.  No key; usage policy requires a User-Agent."""

    source = GeocodeSource.NOMINATIM
    base_url = "https://nominatim.openstreetmap.org/search"

    def geocode(self, address: str) -> GeocodeResult:
        data = self._traced_get({
            "q": address,
            "format": "json",
            "limit": 1,
            "countrycodes": "us",
            "addressdetails": 1,
        })

        if not isinstance(data, list) or not data:
            raise GeocodingError("Nominatim returned no results")

        try:
            lat, lng = float(data[0]["lat"]), float(data[0]["lon"])
        except (KeyError, TypeError, ValueError) as e:
            raise GeocodingError("Nominatim response missing lat/lon") from e

        details = data[0].get("address") or {}
        return GeocodeResult(
            latitude=lat,
            longitude=lng,
            accuracy=GeocodeAccuracy.APPROXIMATE,
            source=self.source,
            county=details.get("county") or None,
        )


def build_provider_chain(settings: EnrichmentSettings) -> List[BaseGeocoder]:
    """Google and OpenCage only when keyed; Nominatim always last."""
    kwargs = {"timeout": settings.geocoding_timeout, "user_agent": settings.user_agent}
    chain: List[BaseGeocoder] = []
    if settings.google_api_key:
        chain.append(GoogleGeocoder(settings.google_api_key, **kwargs))
    if settings.opencage_api_key:
        chain.append(OpenCageGeocoder(settings.opencage_api_key, **kwargs))
    chain.append(NominatimGeocoder(**kwargs))
    return chain


# =============================================================================
# Resolver
# =============================================================================

def address_hash(street_address, city, state, zip_code) -> str:
    """Content hash of the four address fields that drive geocoding."""
    raw = "".join(str(v or "") for v in (street_address, city, state, zip_code))
    return hashlib.md5(raw.encode("utf-8")).hexdigest()


def geocoding_query(street_address, city, state, zip_code) -> str:
    """"123 Main St, Dover, DE 19901"."""
    return f"{street_address}, {city}, {state} {zip_code}".strip()


class GeocodingResolver:
    """Walks the provider chain for an address, first success wins."""

    def __init__(self, providers: Sequence[BaseGeocoder]):
        self.providers = list(providers)

    @classmethod
    def from_settings(cls, settings: EnrichmentSettings) -> "GeocodingResolver":
        return cls(build_provider_chain(settings))

    def resolve(self, address: str) -> Optional[GeocodeResult]:
        """Return the first provider's result, or None if every provider failed."""
        for provider in self.providers:
            try:
                result = provider.geocode(address)
            except GeocodingError as e:
                logger.warning("Geocoding via %s failed for %r: %s", provider.name, address, e)
                continue
            logger.info(
                "Geocoded %r via %s (%.6f, %.6f, %s)",
                address, provider.name, result.latitude, result.longitude, result.accuracy.value,
            )
            return result

        logger.warning("All %d geocoding providers failed for %r", len(self.providers), address)
        return None

    def geocode_listing(self, repo) -> GeocodeOutcome:
        """Geocode one listing through its repository, honouring the hash cache.

        repo is a ListingRepository.  Writes latitude, longitude,
        geocoding_accuracy, geocoding_source and the address hash on success;
        county only when the listing has none yet.
        """
        street = repo.get_text("street_address")
        city = repo.get_text("city")
        state = repo.get_text("state")
        zip_code = repo.get_text("zip_code")

        if not (street and city and state and zip_code):
            return GeocodeOutcome(status="incomplete_address")

        current_hash = address_hash(street, city, state, zip_code)
        has_coordinates = (
            repo.read_number("latitude", allow_negative=True) is not None
            and repo.read_number("longitude", allow_negative=True) is not None
        )
        if has_coordinates and repo.get_meta("_address_hash") == current_hash:
            logger.debug("Address unchanged for listing %s, skipping geocoding", repo.listing_id)
            return GeocodeOutcome(status="cache_hit", address_hash=current_hash)

        result = self.resolve(geocoding_query(street, city, state, zip_code))
        if result is None:
            return GeocodeOutcome(status="failed", address_hash=current_hash)

        repo.set("latitude", result.latitude)
        repo.set("longitude", result.longitude)
        repo.set("geocoding_accuracy", result.accuracy.value)
        repo.set("geocoding_source", result.source.value)
        repo.set_meta("_address_hash", current_hash)

        if result.county and not repo.get_text("county"):
            repo.set("county", result.county)

        return GeocodeOutcome(status="resolved", result=result, address_hash=current_hash)
