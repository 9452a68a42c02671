"""
List Gallery Use Case

Completed try-on results joined with their inputs, grouped by calendar date.
"""
from itertools import groupby
from typing import List
from libs.result import Result, Return
from src.app.repositories.catalog_repository import CatalogRepository
from src.app.repositories.generation_job_repository import GenerationJobRepository
from .dtos import (
    GalleryGroupDTO,
    GalleryItemDTO,
    GalleryQueryDTO,
    GalleryResponseDTO,
    VideoStateDTO,
)


class ListGallery:
    """
    Groups are ordered newest date first. Within a group items follow the
    requested sort; date sorting compares full timestamps.
    """

    def __init__(self, job_repo: GenerationJobRepository, catalog_repo: CatalogRepository):
        self.job_repo = job_repo
        self.catalog_repo = catalog_repo

    async def execute(self, query: GalleryQueryDTO) -> Result[GalleryResponseDTO]:
        jobs = await self.job_repo.list_completed_for_user(
            query.user_id, search=query.search, gender=query.gender
        )

        product_images = await self.catalog_repo.get_product_images(
            sorted({job.product_image_id for job in jobs if job.product_image_id})
        )
        model_photos = await self.catalog_repo.get_model_photos(
            sorted({job.model_photo_id for job in jobs if job.model_photo_id})
        )
        videos = await self.job_repo.get_latest_videos_for_parents(
            query.user_id, [job.id for job in jobs]
        )

        items: List[GalleryItemDTO] = []
        for job in jobs:
            product = product_images.get(job.product_image_id)
            model = model_photos.get(job.model_photo_id)
            video = videos.get(job.id)
            items.append(
                GalleryItemDTO(
                    job_id=job.id,
                    kind=job.kind.value,
                    result_url=job.result_url,
                    parent_job_id=job.parent_job_id,
                    product_image_id=job.product_image_id,
                    product_filename=product.original_filename if product else None,
                    product_image_url=product.image_url if product else None,
                    model_photo_id=job.model_photo_id,
                    model_name=model.name if model else None,
                    model_gender=model.gender if model else None,
                    model_image_url=model.image_url if model else None,
                    credits_used=job.credits_used,
                    processing_time_seconds=job.processing_time_seconds or 0,
                    created_at=job.created_at,
                    video=VideoStateDTO(
                        job_id=video.id,
                        status=video.status.value,
                        video_url=video.result_url,
                        error_message=video.error_message,
                        created_at=video.created_at,
                    ) if video else None,
                )
            )

        items = self._sort(items, query.sort_by, query.sort_order == "desc")

        # Stable sort keeps the requested order inside each day
        by_day = sorted(items, key=lambda item: item.created_at.date(), reverse=True)
        groups = [
            GalleryGroupDTO(date=day, items=list(day_items))
            for day, day_items in groupby(by_day, key=lambda item: item.created_at.date())
        ]

        return Return.ok(GalleryResponseDTO(groups=groups, total=len(items)))

    @staticmethod
    def _sort(items: List[GalleryItemDTO], sort_by: str, descending: bool) -> List[GalleryItemDTO]:
        if sort_by == "model":
            key = lambda item: (item.model_name or "").lower()  # noqa: E731
        elif sort_by == "filename":
            key = lambda item: (item.product_filename or "").lower()  # noqa: E731
        else:
            key = lambda item: item.created_at  # noqa: E731
        return sorted(items, key=key, reverse=descending)
