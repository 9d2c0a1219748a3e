"""Address lookup against an OpenStreetMap Nominatim server.

Used to plot customers on the route map and to fill in an appointment's
location from the customer's address. Failures are reported, not retried.
"""

import logging

import httpx
from pydantic import BaseModel

from pestcontrol.core import config

logger = logging.getLogger(__name__)


class GeocodingError(Exception):
    """The geocoding provider could not be reached or answered with an error."""


class GeocodeResult(BaseModel):
    display_name: str
    lat: float
    lng: float


def search(query: str, limit: int = 5, client: httpx.Client | None = None) -> list[GeocodeResult]:
    query = (query or '').strip()
    if len(query) < 3:
        return []

    params = {
        'q': query,
        'format': 'json',
        'limit': str(max(1, min(limit, 10))),
    }
    headers = {
        'User-Agent': config.NOMINATIM_USER_AGENT,
        'Accept': 'application/json',
    }
    url = f'{config.NOMINATIM_BASE_URL}/search'

    try:
        if client is None:
            with httpx.Client(timeout=config.GEOCODER_TIMEOUT_SECONDS) as owned_client:
                response = owned_client.get(url, params=params, headers=headers)
        else:
            response = client.get(url, params=params, headers=headers)
    except httpx.HTTPError as exc:
        logger.warning('Geocoding request failed: %s', exc)
        raise GeocodingError('Geocoding provider unavailable') from exc

    if response.status_code >= 400:
        logger.warning('Nominatim error %s: %s', response.status_code, response.text[:200])
        raise GeocodingError('Geocoding provider error')

    results = []
    for item in response.json():
        display_name = item.get('display_name')
        if not display_name or item.get('lat') is None or item.get('lon') is None:
            continue
        try:
            results.append(GeocodeResult(display_name=display_name, lat=float(item['lat']), lng=float(item['lon'])))
        except (TypeError, ValueError):
            continue
    return results


def geocode(address: str, client: httpx.Client | None = None) -> GeocodeResult | None:
    """Best match for ``address``, or None when the provider knows nothing about it."""
    results = search(address, limit=1, client=client)
    return results[0] if results else None
