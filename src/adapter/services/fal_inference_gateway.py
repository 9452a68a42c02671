"""fal.ai queue implementation of InferenceGateway

Talks to the fal queue REST API directly with httpx:

    POST {queue}/{model_id}                 -> request_id, status_url, response_url
    GET  {status_url}?logs=1                -> IN_QUEUE | IN_PROGRESS | COMPLETED
    GET  {response_url}                     -> model output
"""

import logging
import random
from typing import Any, Dict, Optional
import httpx
from src.app.services.inference_gateway import (
    ArtifactMissing,
    ArtifactNotReady,
    ExternalHandle,
    InferenceGateway,
    PollResult,
    PollStatus,
    SubmissionError,
    TransientPollError,
)
from src.domain.generation_job import JobKind

logger = logging.getLogger(__name__)

TRYON_DEFAULTS: Dict[str, Any] = {
    "category": "auto",
    "mode": "quality",
    "output_format": "png",
}

VIDEO_DEFAULTS: Dict[str, Any] = {
    "prompt": "fashion model, very subtle turning movements",
    "resolution": "480p",
    "duration": 5,
    "camera_fixed": False,
}

# Queue status -> (core status, progress hint)
STATUS_MAP = {
    "IN_QUEUE": (PollStatus.QUEUED, 10),
    "IN_PROGRESS": (PollStatus.PROCESSING, 50),
    "COMPLETED": (PollStatus.COMPLETED, 100),
}


def new_seed() -> int:
    return random.randint(1, 100_000_000)


class FalInferenceGateway(InferenceGateway):
    """
    InferenceGateway backed by the fal.ai request queue

    Features:
    - One model per job kind (image try-on, image-to-video)
    - Fresh random seed on every submission
    - 429/5xx, transport errors and unreadable bodies while polling surface
      as TransientPollError
    """

    provider_name = "fal-ai"

    def __init__(
        self,
        api_key: str,
        tryon_model_id: str,
        video_model_id: str,
        queue_url: str = "https://queue.fal.run",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            api_key: fal API key, sent as "Authorization: Key <api_key>"
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.api_key = api_key
        self.models = {
            JobKind.TRYON: tryon_model_id,
            JobKind.REGENERATION: tryon_model_id,
            JobKind.VIDEO: video_model_id,
        }
        self.queue_url = queue_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            transport=self.transport,
            headers={"Authorization": f"Key {self.api_key}"},
        )

    def build_input(
        self, job_kind: JobKind, input_urls: Dict[str, str], params: Dict[str, Any]
    ) -> Dict[str, Any]:
        defaults = VIDEO_DEFAULTS if job_kind == JobKind.VIDEO else TRYON_DEFAULTS
        payload = {**defaults, **params, **input_urls}
        payload["seed"] = new_seed()
        return payload

    async def submit(
        self, job_kind: JobKind, input_urls: Dict[str, str], params: Dict[str, Any]
    ) -> ExternalHandle:
        if not self.api_key:
            raise SubmissionError("FAL_KEY is not configured")

        model_id = self.models[job_kind]
        payload = self.build_input(job_kind, input_urls, params)

        try:
            async with self._client() as client:
                response = await client.post(f"{self.queue_url}/{model_id}", json=payload)
        except httpx.HTTPError as e:
            raise SubmissionError(f"Could not reach provider: {e}") from e

        if response.status_code >= 400:
            raise SubmissionError(
                f"Provider rejected request ({response.status_code}): {_detail(response)}"
            )

        try:
            body = response.json()
        except ValueError as e:
            raise SubmissionError(f"Provider returned a non-JSON response: {_detail(response)}") from e
        if not isinstance(body, dict):
            raise SubmissionError("Provider response was not an object")
        request_id = body.get("request_id")
        if not request_id:
            raise SubmissionError("Provider response had no request_id")

        logger.info(f"Submitted {job_kind.value} to {model_id}: {request_id}")
        recorded = {k: v for k, v in payload.items() if k not in input_urls}
        return ExternalHandle(
            request_id=request_id,
            job_kind=job_kind,
            model_id=model_id,
            status_url=body.get("status_url"),
            response_url=body.get("response_url"),
            params=recorded,
        )

    async def poll(self, handle: ExternalHandle) -> PollResult:
        status_url = handle.status_url or (
            f"{self.queue_url}/{handle.model_id}/requests/{handle.request_id}/status"
        )
        try:
            async with self._client() as client:
                response = await client.get(status_url, params={"logs": 1})
        except httpx.HTTPError as e:
            raise TransientPollError(str(e)) from e

        if response.status_code == 429 or response.status_code >= 500:
            raise TransientPollError(f"Status check returned {response.status_code}")
        if response.status_code >= 400:
            return PollResult(
                status=PollStatus.FAILED,
                progress=0,
                message=f"Status check rejected ({response.status_code}): {_detail(response)}",
            )

        try:
            body = response.json()
        except ValueError as e:
            raise TransientPollError(f"Status check returned a non-JSON body: {_detail(response)}") from e
        if not isinstance(body, dict):
            raise TransientPollError("Status check returned an unexpected body")
        message = ""
        logs = body.get("logs") or []
        if logs:
            message = logs[-1].get("message") or ""

        if body.get("error"):
            return PollResult(status=PollStatus.FAILED, progress=100, message=str(body["error"]))

        status, progress = STATUS_MAP.get(body.get("status"), (PollStatus.FAILED, 0))
        if status == PollStatus.FAILED and not message:
            message = f"Unexpected provider status: {body.get('status')}"
        return PollResult(status=status, progress=progress, message=message or "Processing...")

    async def fetch_result(self, handle: ExternalHandle) -> str:
        response_url = handle.response_url or (
            f"{self.queue_url}/{handle.model_id}/requests/{handle.request_id}"
        )
        try:
            async with self._client() as client:
                response = await client.get(response_url)
        except httpx.HTTPError as e:
            raise ArtifactNotReady(str(e)) from e

        if response.status_code == 429 or response.status_code >= 500:
            raise ArtifactNotReady(f"Result fetch returned {response.status_code}")
        if response.status_code >= 400:
            raise ArtifactMissing(f"Result unavailable ({response.status_code}): {_detail(response)}")

        try:
            body = response.json()
        except ValueError as e:
            raise ArtifactMissing(f"Provider result is not JSON: {_detail(response)}") from e
        if handle.job_kind == JobKind.VIDEO:
            url = (body.get("video") or {}).get("url")
        else:
            images = body.get("images") or []
            url = images[0].get("url") if images else None

        if not url:
            raise ArtifactMissing("Provider result contains no artifact URL")
        return url

    async def download(self, url: str) -> bytes:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self.transport, follow_redirects=True
            ) as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise ArtifactMissing(f"Could not download artifact: {e}") from e
        return response.content


def _detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict) and "detail" in body:
        return str(body["detail"])
    return str(body)[:200]
