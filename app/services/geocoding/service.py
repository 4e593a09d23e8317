"""
Geocoding Service
Forward geocoding of free-text place names through the Mapbox Search Box API
"""
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx

from app.core.config import get_settings

logger = logging.getLogger(__name__)

# Approximate: 1 degree latitude ~ 111km
LOCATION_TYPE_MARGINS = {
    "address": 0.1,
    "poi": 0.2,
    "place": 0.5,
    "city": 0.5,
    "locality": 0.3,
    "district": 0.5,
    "region": 2.0,
    "country": 5.0,
    "default": 1.0,
}

DEFAULT_BBOX_EXPANSION = 0.2


class GeocodingError(Exception):
    """Geocoding provider unavailable or returned an error"""


@dataclass
class BoundingBox:
    min_lng: float
    min_lat: float
    max_lng: float
    max_lat: float

    def as_dict(self) -> Dict[str, float]:
        return {
            "min_lng": self.min_lng,
            "min_lat": self.min_lat,
            "max_lng": self.max_lng,
            "max_lat": self.max_lat,
        }


@dataclass
class GeocodedLocation:
    name: str
    lat: float
    lng: float
    bbox: BoundingBox
    type: str
    country: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "center": {"lat": self.lat, "lng": self.lng},
            "bbox": self.bbox.as_dict(),
            "type": self.type,
            "country": self.country,
        }


def bbox_with_margin(lat: float, lng: float, margin_degrees: float) -> BoundingBox:
    return BoundingBox(
        min_lng=lng - margin_degrees,
        min_lat=lat - margin_degrees,
        max_lng=lng + margin_degrees,
        max_lat=lat + margin_degrees,
    )


def expand_bbox(bbox: BoundingBox, expand_percent: float = DEFAULT_BBOX_EXPANSION) -> BoundingBox:
    lng_expand = (bbox.max_lng - bbox.min_lng) * expand_percent
    lat_expand = (bbox.max_lat - bbox.min_lat) * expand_percent
    return BoundingBox(
        min_lng=bbox.min_lng - lng_expand,
        min_lat=bbox.min_lat - lat_expand,
        max_lng=bbox.max_lng + lng_expand,
        max_lat=bbox.max_lat + lat_expand,
    )


def margin_for_type(feature_type: str | None) -> float:
    return LOCATION_TYPE_MARGINS.get(feature_type or "default", LOCATION_TYPE_MARGINS["default"])


class GeocodingService:
    """Mapbox Search Box API client (suggest + retrieve)"""

    def __init__(self, access_token: str | None = None, client: httpx.Client | None = None):
        self.base_url = "https://api.mapbox.com/search/searchbox/v1"
        self.timeout = 10.0
        self.access_token = access_token if access_token is not None else get_settings().mapbox_access_token
        self._client = client

    def _get(self, client: httpx.Client, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        response = client.get(url, params=params)
        response.raise_for_status()
        return response.json()

    def geocode(self, query: str, expand_percent: float = DEFAULT_BBOX_EXPANSION) -> Optional[GeocodedLocation]:
        """
        Geocode a place name

        Args:
            query: Free-text location, e.g. "Mallorca"
            expand_percent: How much to grow a provider bounding box (0.2 = 20%)

        Returns:
            Best match, or None when nothing was found
        """
        if not self.access_token:
            raise GeocodingError("Mapbox access token not configured")

        if not query or len(query.strip()) < 2:
            return None

        session_token = str(uuid.uuid4())
        client = self._client or httpx.Client(timeout=self.timeout)
        try:
            suggestions = self._get(
                client,
                f"{self.base_url}/suggest",
                {
                    "q": query.strip(),
                    "access_token": self.access_token,
                    "session_token": session_token,
                    "types": "region,city,country,place",
                    "limit": 1,
                    "language": "en",
                },
            ).get("suggestions") or []
            if not suggestions or not suggestions[0].get("mapbox_id"):
                logger.info("No geocoding suggestions for %r", query)
                return None

            suggestion = suggestions[0]
            features = self._get(
                client,
                f"{self.base_url}/retrieve/{suggestion['mapbox_id']}",
                {"access_token": self.access_token, "session_token": session_token, "language": "en"},
            ).get("features") or []
        except httpx.HTTPError as e:
            logger.error("Mapbox geocoding failed for %r: %s", query, e)
            raise GeocodingError(f"Mapbox API error: {e}") from e
        finally:
            if self._client is None:
                client.close()

        if not features or not (features[0].get("geometry") or {}).get("coordinates"):
            return None

        feature = features[0]
        lng, lat = feature["geometry"]["coordinates"][:2]
        properties = feature.get("properties") or {}
        feature_type = properties.get("feature_type") or suggestion.get("feature_type") or "default"
        name = properties.get("full_address") or properties.get("name") or suggestion.get("name") or query
        country = ((properties.get("context") or {}).get("country") or {}).get("name")

        provider_bbox = properties.get("bbox")
        if isinstance(provider_bbox, list) and len(provider_bbox) == 4:
            bbox = expand_bbox(BoundingBox(*provider_bbox), expand_percent)
        else:
            bbox = bbox_with_margin(lat, lng, margin_for_type(feature_type))

        return GeocodedLocation(
            name=name, lat=lat, lng=lng, bbox=bbox, type=feature_type, country=country, raw=feature
        )


def get_geocoding_service() -> GeocodingService:
    """FastAPI dependency"""
    return GeocodingService()
