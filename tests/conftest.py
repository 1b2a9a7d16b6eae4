"""
Pytest fixtures for the report search backend tests
"""
from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from reportsearch.db import Database
from reportsearch.models import Report, Tag
from reportsearch.search import SearchIndex

INDEX_NAME = "reports"


class FakeSearchBackend:
    """In-memory search server answering through ``httpx.MockTransport``."""

    def __init__(self):
        self.documents: dict[str, dict] = {}
        self.requests: list[httpx.Request] = []
        self.fail_with: int | None = None
        self.raise_error: Exception | None = None
        self.search_response: dict | None = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.raise_error is not None:
            raise self.raise_error
        if self.fail_with is not None:
            return httpx.Response(self.fail_with, json={"error": "backend failure"})

        path = request.url.path
        if request.method == "PUT":
            doc_id = path.rsplit("/", 1)[-1]
            self.documents[doc_id] = json.loads(request.content)
            return httpx.Response(201, json={"_id": doc_id, "result": "created"})

        if request.method == "POST" and path == f"/{INDEX_NAME}/_search":
            if self.search_response is not None:
                return httpx.Response(200, json=self.search_response)
            term = json.loads(request.content)["query"]["match"]["text"].lower()
            hits = [
                {"_score": float(doc["text"].lower().count(term)), "_source": doc}
                for doc in self.documents.values()
                if term in doc["text"].lower()
            ]
            hits.sort(key=lambda hit: hit["_score"], reverse=True)
            return httpx.Response(
                200,
                json={"took": 2, "hits": {"total": {"value": len(hits), "relation": "eq"}, "hits": hits}},
            )

        if request.method == "GET" and path == "/":
            return httpx.Response(200, json={"tagline": "You Know, for Search"})

        return httpx.Response(404, json={"error": "not found"})


@pytest.fixture
async def database():
    """Fresh in-memory SQLite database with the schema created."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    db = Database(engine)
    await db.create_all()
    yield db
    await db.close()


@pytest.fixture
def search_backend() -> FakeSearchBackend:
    return FakeSearchBackend()


@pytest.fixture
async def search_index(search_backend):
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(search_backend.handler),
        base_url="http://search.test",
    )
    index = SearchIndex(client, index_name=INDEX_NAME, doc_type="_doc", max_hits=50)
    yield index
    await index.close()


@pytest.fixture
async def tags(database) -> dict[str, int]:
    """Seed a small tag catalog; returns name -> id."""
    async with database.session() as session:
        catalog = [
            Tag(name="Urgent", color="#e74c3c"),
            Tag(name="Cardiology", color="#c0392b"),
            Tag(name="Normal", color="#5cb85c"),
            Tag(name="Follow-up", color=None),
        ]
        session.add_all(catalog)
        await session.commit()
        return {tag.name: tag.id for tag in catalog}


async def add_report(database: Database, file_name: str, name: str, text: str = "") -> int:
    """Insert a report row directly; returns its id."""
    async with database.session() as session:
        report = Report(
            file_name=file_name,
            name=name,
            author=f"Author of {name}",
            synopsis=f"{name}\n...",
            text=text or f"Title: {name}\n",
        )
        session.add(report)
        await session.commit()
        return report.id


@pytest.fixture
def report_dir(tmp_path: Path) -> Path:
    """Directory with three source documents."""
    directory = tmp_path / "text"
    directory.mkdir()
    (directory / "a_heart.txt").write_text(
        "Title: Echocardiogram\nAuthor: Dr. Heart\nFindings: mild mitral regurgitation.\n",
        encoding="utf-8",
    )
    (directory / "b_brain.txt").write_text(
        "Title: Brain MRI\nAuthor: Dr. Neuro\nNo acute intracranial abnormality.\n",
        encoding="utf-8",
    )
    (directory / "c_lung.txt").write_text(
        "Title: Chest CT\nAuthor: Dr. Lung\nSmall nodule in the right upper lobe.\nNodule follow-up advised.\n",
        encoding="utf-8",
    )
    return directory


@pytest.fixture
def make_report(database):
    async def _make(file_name: str, name: str, text: str = "") -> int:
        return await add_report(database, file_name, name, text)

    return _make
