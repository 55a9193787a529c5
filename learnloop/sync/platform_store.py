"""
Platform record store.

HTTP RecordStore for the study-set platform's studiable-terms API. Used
from the background sync thread, so it wraps a synchronous httpx client.

Usage:
    with PlatformRecordStore(PlatformConfig(base_url=..., api_key=...)) as store:
        records = store.load("user-1", term_ids)
        store.upsert("user-1", record)
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

import httpx
from loguru import logger
from pydantic import BaseModel

from learnloop.core.terms import LEARN_MODE, TermRecord

from .record_store import SyncError


class PlatformConfig(BaseModel):
    """Connection settings for the platform API."""

    base_url: str = "http://localhost:3000"
    api_key: str | None = None
    timeout_seconds: float = 10.0

    # Endpoints
    records_endpoint: str = "/api/v1/studiable-terms"
    rounds_endpoint: str = "/api/v1/learn-rounds"


class PlatformRecordStore:
    """RecordStore backed by the platform's HTTP API."""

    def __init__(self, config: PlatformConfig, transport: httpx.BaseTransport | None = None):
        self.config = config
        self._transport = transport
        self._client: httpx.Client | None = None

    def __enter__(self) -> PlatformRecordStore:
        self._ensure_client()
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def _ensure_client(self) -> httpx.Client:
        if self._client is None:
            headers = {"Content-Type": "application/json"}
            if self.config.api_key:
                headers["X-API-Key"] = self.config.api_key

            self._client = httpx.Client(
                base_url=self.config.base_url,
                headers=headers,
                timeout=self.config.timeout_seconds,
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        if self._client:
            self._client.close()
            self._client = None

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        client = self._ensure_client()
        try:
            response = client.request(method, url, **kwargs)
        except httpx.RequestError as e:
            logger.debug(f"Platform request {method} {url} failed: {e}")
            raise SyncError(f"Connection error: {e}") from e
        return response

    @staticmethod
    def _raise_for_status(response: httpx.Response, action: str) -> None:
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise SyncError(f"{action} failed with HTTP {response.status_code}") from e

    # =========================================================================
    # Term Records
    # =========================================================================

    def load(
        self, user_id: str, term_ids: Iterable[str], mode: str = LEARN_MODE
    ) -> list[TermRecord]:
        ids = list(term_ids)
        if not ids:
            return []
        response = self._request(
            "GET",
            self.config.records_endpoint,
            params={"user_id": user_id, "mode": mode, "term_ids": ",".join(ids)},
        )
        self._raise_for_status(response, "Loading records")
        return [TermRecord.from_dict(item) for item in response.json().get("records", [])]

    def upsert(self, user_id: str, record: TermRecord) -> None:
        response = self._request(
            "PUT",
            f"{self.config.records_endpoint}/{record.term_id}",
            json={"user_id": user_id, **record.to_dict()},
        )
        self._raise_for_status(response, f"Storing record {record.term_id}")

    def reset(self, user_id: str, term_ids: Iterable[str], mode: str = LEARN_MODE) -> int:
        response = self._request(
            "POST",
            f"{self.config.records_endpoint}/reset",
            json={"user_id": user_id, "mode": mode, "term_ids": list(term_ids)},
        )
        self._raise_for_status(response, "Resetting records")
        return int(response.json().get("deleted", 0))

    # =========================================================================
    # Round Counter
    # =========================================================================

    def load_round(self, user_id: str, set_id: str) -> int:
        response = self._request(
            "GET",
            f"{self.config.rounds_endpoint}/{set_id}",
            params={"user_id": user_id},
        )
        if response.status_code == 404:
            return 1
        self._raise_for_status(response, f"Loading round for {set_id}")
        return int(response.json().get("round", 1))

    def save_round(self, user_id: str, set_id: str, round_number: int) -> None:
        response = self._request(
            "PUT",
            f"{self.config.rounds_endpoint}/{set_id}",
            json={"user_id": user_id, "round": round_number},
        )
        self._raise_for_status(response, f"Storing round for {set_id}")

    def reset_round(self, user_id: str, set_id: str) -> None:
        self.save_round(user_id, set_id, 1)
