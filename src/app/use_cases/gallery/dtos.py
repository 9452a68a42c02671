"""Data Transfer Objects for Gallery Use Cases"""

from datetime import date, datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, Field


class GalleryQueryDTO(BaseModel):
    user_id: str
    search: Optional[str] = Field(default=None, description="Matches product filename or model name")
    gender: Optional[str] = Field(default=None, description="Model photo gender")
    sort_by: Literal["date", "model", "filename"] = "date"
    sort_order: Literal["asc", "desc"] = "desc"


class VideoStateDTO(BaseModel):
    """Latest video job for a gallery item"""
    job_id: str
    status: str
    video_url: Optional[str] = None
    error_message: Optional[str] = None
    created_at: datetime


class GalleryItemDTO(BaseModel):
    job_id: str
    kind: str
    result_url: str
    parent_job_id: Optional[str] = None
    product_image_id: Optional[str] = None
    product_filename: Optional[str] = None
    product_image_url: Optional[str] = None
    model_photo_id: Optional[str] = None
    model_name: Optional[str] = None
    model_gender: Optional[str] = None
    model_image_url: Optional[str] = None
    credits_used: int
    processing_time_seconds: int = 0
    created_at: datetime
    video: Optional[VideoStateDTO] = None


class GalleryGroupDTO(BaseModel):
    date: date
    items: List[GalleryItemDTO]


class GalleryResponseDTO(BaseModel):
    groups: List[GalleryGroupDTO]
    total: int


class BulkDownloadCommandDTO(BaseModel):
    user_id: str
    job_ids: List[str] = Field(..., min_length=1)


class BulkDownloadResultDTO(BaseModel):
    filename: str
    content: bytes
    included: List[str]
    skipped: List[str]
