"""Integration tests for the gallery API"""

import io
import zipfile
import pytest

from src.domain.generation_job import JobKind, JobStatus
from tests.fixtures.db import seed_catalog, seed_job


@pytest.mark.asyncio
class TestGalleryListAPI:

    async def test_completed_results_are_grouped(self, client, db_session):
        """
        Given: One completed try-on with a video, one failed try-on
        When: GET /api/gallery
        Then: Only the completed result, with its catalogue details and video state
        """
        # Arrange
        product, model = await seed_catalog(db_session, "user_1", filename="red_shirt.png")
        done = await seed_job(db_session, "user_1", product=product, model=model)
        await seed_job(db_session, "user_1", status=JobStatus.FAILED, product=product, model=model)
        await seed_job(
            db_session, "user_1", kind=JobKind.VIDEO, status=JobStatus.PROCESSING, parent_job_id=done.id
        )

        # Act
        response = await client.get("/api/gallery")

        # Assert
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert len(data["groups"]) == 1
        item = data["groups"][0]["items"][0]
        assert item["job_id"] == done.id
        assert item["product_filename"] == "red_shirt.png"
        assert item["model_name"] == "Ava"
        assert item["video"]["status"] == "processing"
        assert item["video"]["video_url"] is None

    async def test_search_filter(self, client, db_session):
        shirt, ava = await seed_catalog(db_session, "user_1", filename="shirt.png")
        jeans, ben = await seed_catalog(db_session, "user_1", filename="jeans.png", model_name="Ben", gender="male")
        await seed_job(db_session, "user_1", product=shirt, model=ava)
        wanted = await seed_job(db_session, "user_1", product=jeans, model=ben)

        response = await client.get("/api/gallery", params={"search": "JEANS"})

        items = response.json()["groups"][0]["items"]
        assert [i["job_id"] for i in items] == [wanted.id]

    async def test_empty_gallery(self, client):
        response = await client.get("/api/gallery", headers={"X-User-Id": "nobody"})

        assert response.json() == {"groups": [], "total": 0}


@pytest.mark.asyncio
class TestGalleryDownloadAPI:

    async def test_download_zip(self, client, db_session, artifacts):
        product, model = await seed_catalog(db_session, "user_1", filename="red_shirt.png")
        job = await seed_job(db_session, "user_1", product=product, model=model)
        running = await seed_job(db_session, "user_1", status=JobStatus.PROCESSING)
        artifacts[job.result_url] = b"\x89PNG result"

        response = await client.post("/api/gallery/download", json={"job_ids": [job.id, running.id]})

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/zip"
        assert response.headers["x-skipped-jobs"] == running.id
        with zipfile.ZipFile(io.BytesIO(response.content)) as archive:
            assert archive.namelist() == ["tryon-red_shirt.png-Ava.png"]
            assert archive.read("tryon-red_shirt.png-Ava.png") == b"\x89PNG result"

    async def test_nothing_downloadable(self, client, db_session):
        job = await seed_job(db_session, "user_2")

        response = await client.post("/api/gallery/download", json={"job_ids": [job.id]})

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOTHING_TO_DOWNLOAD"

    async def test_empty_selection_is_rejected(self, client):
        response = await client.post("/api/gallery/download", json={"job_ids": []})

        assert response.status_code == 400


@pytest.mark.asyncio
class TestGalleryDeleteAPI:

    async def test_delete_result(self, client, db_session, storage):
        job = await seed_job(db_session, "user_1")
        storage.objects[f"try-on-results/{job.result_path}"] = b"png"

        response = await client.delete(f"/api/gallery/{job.id}")

        assert response.status_code == 204
        assert storage.objects == {}
        assert (await client.get(f"/api/generations/{job.id}")).status_code == 404

    async def test_cannot_delete_running_job(self, client, db_session):
        job = await seed_job(db_session, "user_1", status=JobStatus.PROCESSING)

        response = await client.delete(f"/api/gallery/{job.id}")

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "JOB_IN_PROGRESS"

    async def test_cannot_delete_other_users_result(self, client, db_session):
        job = await seed_job(db_session, "user_2")

        response = await client.delete(f"/api/gallery/{job.id}")

        assert response.status_code == 404
