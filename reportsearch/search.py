"""Full-text search index adapter (Elasticsearch-compatible REST API).

Documents are upserted by report id and queried with a ``match`` query on the
body field. Responses are read through typed models rather than raw dicts.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from . import models
from .config import SearchSettings
from .errors import IndexTimeout, IndexUnavailable
from .repository import ReportRepository, ReportSummary

logger = logging.getLogger(__name__)

SEARCH_FIELD = "text"


class IndexedReport(BaseModel):
    """Document shape stored in the index."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int
    file_name: str = Field(alias="fileName")
    name: str = ""
    author: str = ""
    synopsis: str = ""
    text: str = ""


class SearchHitEnvelope(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    score: float | None = Field(default=None, alias="_score")
    source: IndexedReport = Field(alias="_source")


class TotalHits(BaseModel):
    value: int = 0
    relation: str = "eq"


class HitsEnvelope(BaseModel):
    total: TotalHits = Field(default_factory=TotalHits)
    hits: list[SearchHitEnvelope] = Field(default_factory=list)

    @field_validator("total", mode="before")
    @classmethod
    def coerce_legacy_total(cls, v: Any) -> Any:
        # Pre-7.x servers report the total as a bare integer
        if isinstance(v, int):
            return {"value": v}
        return v


class SearchResponse(BaseModel):
    """Typed view of a ``_search`` response body."""
    model_config = ConfigDict(extra="ignore")

    took: int = 0
    hits: HitsEnvelope = Field(default_factory=HitsEnvelope)


@dataclass
class SearchHit:
    """Report projection plus relevance score."""
    id: int
    name: str
    author: str
    file_name: str
    synopsis: str
    score: float


class SearchIndex:
    """Pushes reports to and queries the search backend."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        index_name: str,
        doc_type: str = "_doc",
        max_hits: int = 100,
    ):
        self.client = client
        self.index_name = index_name
        self.doc_type = doc_type
        self.max_hits = max_hits

    @classmethod
    def from_settings(cls, config: SearchSettings) -> SearchIndex:
        client = httpx.AsyncClient(
            base_url=config.url,
            timeout=config.timeout,
            headers={"Content-Type": "application/json"},
        )
        return cls(
            client,
            index_name=config.index_name,
            doc_type=config.doc_type,
            max_hits=config.max_hits,
        )

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        logger.debug(f"{method} {path}")
        try:
            response = await self.client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise IndexTimeout(f"{method} {path} timed out") from e
        except httpx.HTTPError as e:
            raise IndexUnavailable(f"{method} {path} failed: {e}") from e

        if not response.is_success:
            logger.error(f"{method} {path} returned {response.status_code}: {response.text}")
            raise IndexUnavailable(
                f"{method} {path} returned status {response.status_code}",
                status_code=response.status_code,
            )
        return response

    async def index(self, report: models.Report) -> None:
        """Upsert the full report document keyed by its id."""
        document = IndexedReport(
            id=report.id,
            file_name=report.file_name,
            name=report.name,
            author=report.author,
            synopsis=report.synopsis,
            text=report.text,
        )
        path = f"/{self.index_name}/{self.doc_type}/{report.id}"
        response = await self._request("PUT", path, json=document.model_dump(by_alias=True))
        logger.info(f"Indexed report {report.id} ({report.file_name}): status {response.status_code}")

    async def search(self, term: str) -> list[SearchHit]:
        """Match ``term`` against the body field, highest score first."""
        query = {
            "query": {"match": {SEARCH_FIELD: term}},
            "size": self.max_hits,
        }
        response = await self._request("POST", f"/{self.index_name}/_search", json=query)

        try:
            parsed = SearchResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise IndexUnavailable(f"Unexpected search response: {e}") from e

        logger.info(f"There were {parsed.hits.total.value} hits; took: {parsed.took}ms")

        hits = [
            SearchHit(
                id=hit.source.id,
                name=hit.source.name,
                author=hit.source.author,
                file_name=hit.source.file_name,
                synopsis=hit.source.synopsis,
                score=hit.score or 0.0,
            )
            for hit in parsed.hits.hits
        ]
        # sorted() is stable, so ties keep the index's order
        return sorted(hits, key=lambda hit: hit.score, reverse=True)

    async def ping(self) -> None:
        await self._request("GET", "/")

    async def close(self) -> None:
        await self.client.aclose()


async def search_reports(
    repository: ReportRepository,
    search_index: SearchIndex,
    term: str | None,
) -> list[ReportSummary] | list[SearchHit]:
    """Search the index, or list every report when ``term`` is blank."""
    if not term or not term.strip():
        return await repository.list_all()
    return await search_index.search(term)
