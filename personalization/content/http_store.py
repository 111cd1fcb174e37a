"""
Remote content service client.

Endpoints consumed:
    GET /content/eligible?learner_id=&subject=&max_minutes=&content_types=&difficulty=&accessibility=
        -> {"items": [ContentItem dict, ...]}
    GET /learners/{learner_id}/mastery
        -> {"mastery": {"skill": level}}

Usage:
    async with HttpContentStore("http://content.local") as store:
        items = await store.get_eligible_content("learner-1", "math", CandidateConstraints())
"""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

from personalization.content.store import ContentStore
from personalization.core.errors import DataAccessError
from personalization.models import CandidateConstraints, ContentItem


class HttpContentStore(ContentStore):
    """httpx client for a content service."""

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "HttpContentStore":
        await self._ensure_client()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Accept": "application/json"}
            if self.api_key:
                headers["X-API-Key"] = self.api_key
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _get_json(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        try:
            client = await self._ensure_client()
            response = await client.get(path, params=params)
        except httpx.RequestError as e:
            logger.error(f"Connection error calling content service {path}: {e}")
            raise DataAccessError(str(e), source="content") from e

        if response.status_code != 200:
            logger.error(f"Content service {path} returned {response.status_code}")
            raise DataAccessError(
                f"content service returned {response.status_code}", source="content"
            )
        try:
            return response.json()
        except ValueError as e:
            raise DataAccessError(f"invalid JSON from content service: {e}", source="content") from e

    async def get_eligible_content(
        self, learner_id: str, subject: str | None, constraints: CandidateConstraints
    ) -> list[ContentItem]:
        params: dict[str, Any] = {"learner_id": learner_id}
        if subject:
            params["subject"] = subject
        if constraints.max_minutes is not None:
            params["max_minutes"] = constraints.max_minutes
        if constraints.content_types:
            params["content_types"] = ",".join(constraints.content_types)
        if constraints.difficulty is not None:
            params["difficulty"] = constraints.difficulty.value
        if constraints.accessibility_required:
            params["accessibility"] = ",".join(constraints.accessibility_required)

        data = await self._get_json("/content/eligible", params)
        try:
            items = [ContentItem.from_dict(d) for d in data.get("items", [])]
        except (KeyError, TypeError, ValueError) as e:
            raise DataAccessError(f"malformed content item: {e}", source="content") from e
        logger.debug(f"Fetched {len(items)} eligible items for {learner_id}")
        return items

    async def get_mastery_record(self, learner_id: str) -> dict[str, float]:
        data = await self._get_json(f"/learners/{learner_id}/mastery")
        try:
            return {str(k): float(v) for k, v in data.get("mastery", {}).items()}
        except (AttributeError, TypeError, ValueError) as e:
            raise DataAccessError(f"malformed mastery record: {e}", source="content") from e
