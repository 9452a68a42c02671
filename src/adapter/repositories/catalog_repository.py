"""SQLAlchemy implementation of CatalogRepository"""

from typing import Dict, List, Optional
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.catalog_repository import CatalogRepository
from src.domain.catalog import ModelPhoto, ProductImage


class SqlAlchemyCatalogRepository(CatalogRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_product_image(self, image_id: str, user_id: str) -> Optional[ProductImage]:
        stmt = select(ProductImage).where(
            ProductImage.id == image_id, ProductImage.user_id == user_id
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_model_photo(self, photo_id: str) -> Optional[ModelPhoto]:
        stmt = select(ModelPhoto).where(
            ModelPhoto.id == photo_id, ModelPhoto.is_active == True  # noqa: E712
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_product_images(self, image_ids: List[str]) -> Dict[str, ProductImage]:
        if not image_ids:
            return {}
        stmt = select(ProductImage).where(ProductImage.id.in_(image_ids))
        result = await self.session.execute(stmt)
        return {image.id: image for image in result.scalars().all()}

    async def get_model_photos(self, photo_ids: List[str]) -> Dict[str, ModelPhoto]:
        if not photo_ids:
            return {}
        stmt = select(ModelPhoto).where(ModelPhoto.id.in_(photo_ids))
        result = await self.session.execute(stmt)
        return {photo.id: photo for photo in result.scalars().all()}
