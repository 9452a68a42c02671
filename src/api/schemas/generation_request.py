"""Request schemas for the generation, credits and gallery APIs

Pydantic models for validating incoming HTTP requests.
"""

from typing import List, Literal, Optional
from pydantic import BaseModel, Field


class TryOnRequestSchema(BaseModel):
    """
    Request schema for a new try-on

    Used for POST /generations/tryon endpoint.
    """

    product_image_id: str = Field(
        ...,
        min_length=1,
        description="Uploaded garment image (must belong to the caller)"
    )

    model_photo_id: str = Field(
        ...,
        min_length=1,
        description="Model photo from the catalogue"
    )

    category: Literal["auto", "tops", "bottoms", "one-pieces"] = Field(
        default="auto",
        description="Garment category hint"
    )

    request_id: Optional[str] = Field(
        default=None,
        min_length=1,
        max_length=64,
        description="Client-generated id; retries with the same id are charged once"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "product_image_id": "8c6f5a3e-2f1d-4f7a-9a77-0d2b4b1a9e10",
                "model_photo_id": "0b7d2c1a-5e4f-4d3c-8b2a-1f0e9d8c7b6a",
                "category": "auto",
                "request_id": "0f8fad5b-d9cb-469f-a165-70867728950e",
            }
        }


class GenerationActionSchema(BaseModel):
    """Body of regenerate / video requests (optional)"""

    request_id: Optional[str] = Field(default=None, min_length=1, max_length=64)


class GrantRequestSchema(BaseModel):
    """
    Request schema for granting credits

    Used for POST /credits/grant endpoint (admin only).
    """

    user_id: str = Field(..., min_length=1)
    amount: int = Field(..., gt=0, description="Credits to add (must be > 0)")
    type: Literal["purchase", "bonus"] = "bonus"
    idempotency_key: str = Field(..., min_length=1)
    description: Optional[str] = None


class BulkDownloadRequestSchema(BaseModel):
    job_ids: List[str] = Field(..., min_length=1, max_length=100)
