"""Catalog Repository Interface

Read access to the inputs of a try-on.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional
from src.domain.catalog import ProductImage, ModelPhoto


class CatalogRepository(ABC):

    @abstractmethod
    async def get_product_image(self, image_id: str, user_id: str) -> Optional[ProductImage]:
        """User-scoped product image lookup"""
        pass

    @abstractmethod
    async def get_model_photo(self, photo_id: str) -> Optional[ModelPhoto]:
        """Active model photo lookup"""
        pass

    @abstractmethod
    async def get_product_images(self, image_ids: List[str]) -> Dict[str, ProductImage]:
        pass

    @abstractmethod
    async def get_model_photos(self, photo_ids: List[str]) -> Dict[str, ModelPhoto]:
        pass
