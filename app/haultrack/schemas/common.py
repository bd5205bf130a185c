from pydantic import BaseModel


class GeoPoint(BaseModel):
    lat: float
    lng: float


class LocationPayload(BaseModel):
    location: str | None = None
    geo_location: GeoPoint | None = None
