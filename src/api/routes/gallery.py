"""Gallery API Routes

Browsing, downloading and deleting the caller's finished results.
"""

from typing import Literal, Optional
from fastapi import APIRouter, Depends, Query, Response, status
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from src.api.auth import get_current_user_id
from src.api.error import ClientError
from src.api.schemas.generation_request import BulkDownloadRequestSchema
from src.app.services.object_storage import ObjectStorage
from src.app.use_cases.gallery.bulk_download import BulkDownload
from src.app.use_cases.gallery.delete_result import DeleteResult
from src.app.use_cases.gallery.dtos import (
    BulkDownloadCommandDTO,
    GalleryQueryDTO,
    GalleryResponseDTO,
)
from src.app.use_cases.gallery.list_gallery import ListGallery
from src.adapter.repositories.catalog_repository import SqlAlchemyCatalogRepository
from src.adapter.repositories.generation_job_repository import SqlAlchemyGenerationJobRepository
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.depends import get_artifact_fetcher, get_session, get_storage

router = APIRouter(prefix="/gallery", tags=["Gallery"])


@router.get(
    "",
    response_model=GalleryResponseDTO,
    status_code=status.HTTP_200_OK,
)
async def list_gallery(
    search: Optional[str] = Query(default=None, max_length=200),
    gender: Optional[str] = Query(default=None),
    sort_by: Literal["date", "model", "filename"] = Query(default="date"),
    sort_order: Literal["asc", "desc"] = Query(default="desc"),
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    """
    Completed try-on results grouped by day, newest day first.

    **Query parameters:**
    - `search`: Case-insensitive match on product filename or model name
    - `gender`: Model gender filter
    - `sort_by` / `sort_order`: Ordering inside each day
    """
    use_case = ListGallery(
        SqlAlchemyGenerationJobRepository(session),
        SqlAlchemyCatalogRepository(session),
    )
    result = await use_case.execute(
        GalleryQueryDTO(
            user_id=user_id,
            search=search.strip() if search else None,
            gender=gender,
            sort_by=sort_by,
            sort_order=sort_order,
        )
    )
    return result.value


@router.post(
    "/download",
    status_code=status.HTTP_200_OK,
    response_class=Response,
    responses={200: {"content": {"application/zip": {}}}},
)
async def bulk_download(
    request: BulkDownloadRequestSchema,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
    fetch=Depends(get_artifact_fetcher),
):
    """ZIP archive of the selected results."""
    use_case = BulkDownload(
        SqlAlchemyGenerationJobRepository(session),
        SqlAlchemyCatalogRepository(session),
        fetch,
    )
    result = await use_case.execute(BulkDownloadCommandDTO(user_id=user_id, job_ids=request.job_ids))

    if result.is_err():
        raise ClientError(result.error, status_code=status.HTTP_404_NOT_FOUND)

    return Response(
        content=result.value.content,
        media_type="application/zip",
        headers={
            "Content-Disposition": f'attachment; filename="{result.value.filename}"',
            "X-Skipped-Jobs": ",".join(result.value.skipped),
        },
    )


@router.delete("/{job_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_result(
    job_id: str,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
    storage: ObjectStorage = Depends(get_storage),
):
    """Delete a finished result and its stored file."""
    use_case = DeleteResult(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemyGenerationJobRepository(session),
        storage,
        ApplicationConfig.RESULTS_BUCKET,
    )
    result = await use_case.execute(job_id, user_id)

    if result.is_err():
        if result.error.code == "JOB_NOT_FOUND":
            raise ClientError(result.error, status_code=status.HTTP_404_NOT_FOUND)
        if result.error.code == "JOB_IN_PROGRESS":
            raise ClientError(result.error, status_code=status.HTTP_409_CONFLICT)
        raise ClientError(result.error, status_code=status.HTTP_502_BAD_GATEWAY)

    return Response(status_code=status.HTTP_204_NO_CONTENT)
