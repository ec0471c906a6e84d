"""Location resolution for the ride tools."""

from dataclasses import dataclass
from typing import Any, Optional

import httpx

from shared.errors import ToolServerError
from shared.logging import get_logger

logger = get_logger(__name__)


class GeocodingError(ToolServerError):
    """An address could not be resolved to coordinates."""
    pass


@dataclass
class Location:
    latitude: float
    longitude: float
    label: str


@dataclass
class Route:
    pickup: Location
    destination: Location


async def geocode(http: httpx.AsyncClient, geocoder_url: str, address: str) -> Location:
    """
    Resolve an address with a Nominatim-compatible geocoder.

    Raises:
        GeocodingError: If the lookup fails or finds nothing
    """
    try:
        response = await http.get(
            geocoder_url,
            params={"q": address, "format": "json", "limit": 1},
            headers={"User-Agent": "mcp-tool-server"}
        )
        response.raise_for_status()
        results = response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("Geocoding failed", address=address, error=str(e))
        raise GeocodingError(f"Unable to geocode address: {address}") from e

    if not results:
        raise GeocodingError(f"Unable to find the address: {address}")

    best = results[0]
    return Location(
        latitude=float(best["lat"]),
        longitude=float(best["lon"]),
        label=address
    )


def _coordinates(arguments: dict[str, Any], prefix: str) -> Optional[Location]:
    latitude = arguments.get(f"{prefix}_latitude")
    longitude = arguments.get(f"{prefix}_longitude")
    if latitude is None or longitude is None:
        return None
    return Location(float(latitude), float(longitude), f"{latitude}, {longitude}")


async def resolve_route(http: httpx.AsyncClient, geocoder_url: str, arguments: dict[str, Any]) -> Route:
    """
    Pickup and destination from explicit coordinates or addresses.

    Coordinates win when all four are present.

    Raises:
        GeocodingError: If neither form is complete or an address cannot be found
    """
    pickup = _coordinates(arguments, "pickup")
    destination = _coordinates(arguments, "destination")
    if pickup and destination:
        return Route(pickup, destination)

    pickup_address = arguments.get("pickup_address")
    destination_address = arguments.get("destination_address")
    if not pickup_address or not destination_address:
        raise GeocodingError(
            "Please provide either coordinates (lat/lng) or complete addresses "
            "for both pickup and destination."
        )

    return Route(
        await geocode(http, geocoder_url, pickup_address),
        await geocode(http, geocoder_url, destination_address)
    )
