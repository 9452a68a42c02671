"""Input artifacts a try-on is generated from.

Product images belong to a user; model photos are a shared catalogue.
Both are owned by the upload flow; generation only reads them.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from sqlmodel import Field
from src.domain.base import BaseModel, generate_uuid


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    UNISEX = "unisex"


class ProductImage(BaseModel, table=True):
    __tablename__ = "product_images"

    id: str = Field(default_factory=generate_uuid, primary_key=True)
    user_id: str = Field(index=True)
    original_filename: str
    image_url: str
    image_path: str
    file_size: Optional[int] = None
    mime_type: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)


class ModelPhoto(BaseModel, table=True):
    __tablename__ = "model_photos"

    id: str = Field(default_factory=generate_uuid, primary_key=True)
    name: str
    description: Optional[str] = None
    image_url: str
    image_path: str
    gender: Optional[str] = Field(default=None, description="male, female or unisex")
    is_active: bool = Field(default=True)
    sort_order: int = Field(default=0)
    created_at: datetime = Field(default_factory=datetime.utcnow)
