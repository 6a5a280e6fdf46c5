"""Public models for the landing-IP service."""

from landing_ip.models.geo import GeoResult
from landing_ip.models.geo_parser import parse_geo_response
from landing_ip.models.requests import LandingRequest
from landing_ip.models.responses import ApiResponse, LandingRunData

__all__ = [
    "ApiResponse",
    "GeoResult",
    "LandingRequest",
    "LandingRunData",
    "parse_geo_response",
]
