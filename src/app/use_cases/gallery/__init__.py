"""Gallery use cases"""
from .list_gallery import ListGallery
from .bulk_download import BulkDownload
from .delete_result import DeleteResult
from .dtos import (
    GalleryQueryDTO,
    GalleryItemDTO,
    GalleryGroupDTO,
    GalleryResponseDTO,
    VideoStateDTO,
    BulkDownloadCommandDTO,
    BulkDownloadResultDTO,
)

__all__ = [
    "ListGallery",
    "BulkDownload",
    "DeleteResult",
    "GalleryQueryDTO",
    "GalleryItemDTO",
    "GalleryGroupDTO",
    "GalleryResponseDTO",
    "VideoStateDTO",
    "BulkDownloadCommandDTO",
    "BulkDownloadResultDTO",
]
