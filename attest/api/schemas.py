"""
Pydantic schemas for the attestation endpoints
"""
from pydantic import BaseModel, Field


class PlaceRequest(BaseModel):
    """Placement request sent by the device"""
    identifier: str = Field("", description="Device identifier (serial number)")


class PlaceResponse(BaseModel):
    """Path on the device the token will be written to"""
    path: str


class ErrorResponse(BaseModel):
    """Uniform error envelope"""
    code: int
    description: str


class HelloResponse(BaseModel):
    msg: str
