"""Pydantic models for the JSON envelopes returned by the API.

These models only document the response shapes in the OpenAPI schema;
the endpoints build the payloads from them so the field names stay in
one place.
"""

from __future__ import annotations

from typing import Dict

from pydantic import BaseModel


class AvatarBase64Response(BaseModel):
    """Response returned by the ``/render/*/base64`` endpoints.

    Attributes:
        code: Always ``0`` on success.
        base64: The avatar as a ``data:image/png;base64,`` URI.
    """

    code: int = 0
    base64: str


class ErrorResponse(BaseModel):
    """Envelope returned with HTTP 400 when any stage fails.

    Attributes:
        code: Stage or endpoint identifying error code.
        msg: Human readable error message.
    """

    code: int
    msg: str


class HealthResponse(BaseModel):
    status: str
    assets: Dict[str, str]
