"""
Document store interface and the in-process implementation used by the service.
"""

from __future__ import annotations

import copy
import json
import re
import secrets
import threading
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol, Tuple, Union

from shared.logging import get_logger

from ..query.geo import haversine_km
from ..query.models import (
    AggregationRequest,
    ContainsAll,
    FilterSpec,
    GeoPoint,
    GeoRequest,
    GroupCount,
    InList,
    NumericSummary,
    Range,
    SortDirection,
    SortSpec,
    TextSearchRequest,
    TopN,
)


Document = Dict[str, Any]

TEXT_FIELDS = ("name", "cuisine", "description")
_WORD = re.compile(r"\w+", re.UNICODE)
_MISSING = object()


class DocumentStoreError(RuntimeError):
    """Raised when the document store cannot execute a request."""


class DocumentStore(Protocol):
    """Operations the directory needs from its backing store."""

    async def find(
        self,
        collection: str,
        filter_spec: FilterSpec,
        *,
        sort: Optional[SortSpec] = None,
        skip: int = 0,
        limit: int = 0,
    ) -> List[Document]: ...

    async def count(self, collection: str, filter_spec: FilterSpec) -> int: ...

    async def text_search(self, collection: str, request: TextSearchRequest) -> List[Document]: ...

    async def text_count(self, collection: str, term: str) -> int: ...

    async def near(self, collection: str, request: GeoRequest) -> List[Document]: ...

    async def aggregate(self, collection: str, request: AggregationRequest) -> Dict[str, List[Document]]: ...

    async def find_one(self, collection: str, filter_spec: FilterSpec) -> Optional[Document]: ...

    async def insert_one(self, collection: str, document: Document) -> Document: ...

    async def update_one(self, collection: str, filter_spec: FilterSpec, fields: Document) -> Optional[Document]: ...

    async def delete_one(self, collection: str, filter_spec: FilterSpec) -> bool: ...

    async def delete_many(self, collection: str, filter_spec: FilterSpec) -> int: ...

    async def ping(self) -> bool: ...


def new_object_id() -> str:
    """24 hex character identifier."""
    return secrets.token_hex(12)


def resolve_path(document: Document, path: str) -> Any:
    """Value at a dotted ``path`` or ``_MISSING``."""
    value: Any = document
    for part in path.split("."):
        if not isinstance(value, dict) or part not in value:
            return _MISSING
        value = value[part]
    return value


def _set_path(document: Document, path: str, value: Any) -> None:
    parts = path.split(".")
    target = document
    for part in parts[:-1]:
        target = target.setdefault(part, {})
    target[parts[-1]] = value


def matches(document: Document, filter_spec: FilterSpec) -> bool:
    """True when ``document`` satisfies every predicate of ``filter_spec``."""
    for path, predicate in filter_spec.items():
        value = resolve_path(document, path)

        if isinstance(predicate, InList):
            candidates = value if isinstance(value, list) else [value]
            if not any(candidate in predicate.values for candidate in candidates):
                return False
        elif isinstance(predicate, Range):
            if not isinstance(value, (int, float)) or isinstance(value, bool):
                return False
            if predicate.gte is not None and not value >= predicate.gte:
                return False
            if predicate.lte is not None and not value <= predicate.lte:
                return False
        elif isinstance(predicate, ContainsAll):
            if not isinstance(value, list) or not all(item in value for item in predicate.values):
                return False
        else:
            if isinstance(value, list) and not isinstance(predicate, list):
                if predicate not in value:
                    return False
            elif value is _MISSING or value != predicate:
                return False
    return True


def _sort_key(path: str):
    def key(document: Document) -> Tuple[int, Any]:
        value = resolve_path(document, path)
        # Missing and null sort before any value.
        if value is _MISSING or value is None:
            return (0, 0)
        return (1, value)
    return key


def sort_documents(documents: List[Document], sort: SortSpec) -> List[Document]:
    return sorted(
        documents,
        key=_sort_key(sort.field),
        reverse=sort.direction is SortDirection.DESCENDING,
    )


def text_score(document: Document, tokens: Iterable[str]) -> float:
    """Relevance of ``document`` for the search ``tokens``.

    Each text field contributes its number of matching words, weighted up
    for short fields.
    """
    wanted = set(tokens)
    score = 0.0
    for field in TEXT_FIELDS:
        text = resolve_path(document, field)
        if not isinstance(text, str):
            continue
        words = _WORD.findall(text.lower())
        if not words:
            continue
        hits = sum(1 for word in words if word in wanted)
        if hits:
            score += hits * (1.0 + 1.0 / len(words))
    return round(score, 4)


def _tokenize(term: str) -> List[str]:
    return _WORD.findall(term.lower())


def _group_key(value: Any) -> Any:
    return None if value is _MISSING else value


class InMemoryDocumentStore:
    """Thread-safe, process-local implementation of ``DocumentStore``.

    Documents are deep-copied on the way in and out so callers never share
    state with the store.
    """

    def __init__(self, seed: Optional[Dict[str, Iterable[Document]]] = None):
        self.logger = get_logger("restaurants.document_store")
        self._collections: Dict[str, Dict[str, Document]] = {}
        self._lock = threading.Lock()
        for collection, documents in (seed or {}).items():
            self.seed(collection, documents)

    @classmethod
    def from_json_file(cls, path: Union[str, Path]) -> "InMemoryDocumentStore":
        """Build a store from ``{"<collection>": [documents...]}`` JSON."""
        source = Path(path)
        try:
            payload = json.loads(source.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise DocumentStoreError(f"Cannot load seed file {source}: {exc}") from exc

        if not isinstance(payload, dict):
            raise DocumentStoreError(f"Seed file {source} must hold an object of collections")

        store = cls(payload)
        store.logger.info(
            "Seeded document store",
            path=str(source),
            collections={name: len(docs) for name, docs in payload.items()},
        )
        return store

    def seed(self, collection: str, documents: Iterable[Document]) -> int:
        inserted = 0
        with self._lock:
            bucket = self._collections.setdefault(collection, {})
            for document in documents:
                stored = copy.deepcopy(document)
                stored.setdefault("_id", new_object_id())
                bucket[stored["_id"]] = stored
                inserted += 1
        return inserted

    def _snapshot(self, collection: str) -> List[Document]:
        with self._lock:
            return copy.deepcopy(list(self._collections.get(collection, {}).values()))

    async def find(
        self,
        collection: str,
        filter_spec: FilterSpec,
        *,
        sort: Optional[SortSpec] = None,
        skip: int = 0,
        limit: int = 0,
    ) -> List[Document]:
        documents = [doc for doc in self._snapshot(collection) if matches(doc, filter_spec)]
        if sort is not None:
            documents = sort_documents(documents, sort)
        documents = documents[skip:]
        return documents[:limit] if limit else documents

    async def count(self, collection: str, filter_spec: FilterSpec) -> int:
        return sum(1 for doc in self._snapshot(collection) if matches(doc, filter_spec))

    async def text_search(self, collection: str, request: TextSearchRequest) -> List[Document]:
        tokens = _tokenize(request.term)
        scored = []
        for document in self._snapshot(collection):
            score = text_score(document, tokens)
            if score > 0:
                document[request.score_field] = score
                scored.append(document)

        if request.ranked_by_relevance:
            scored.sort(key=lambda doc: doc[request.score_field], reverse=True)
        else:
            scored = sort_documents(scored, request.sort)

        return scored[request.skip:request.skip + request.limit]

    async def text_count(self, collection: str, term: str) -> int:
        tokens = _tokenize(term)
        return sum(1 for doc in self._snapshot(collection) if text_score(doc, tokens) > 0)

    async def near(self, collection: str, request: GeoRequest) -> List[Document]:
        center = request.center
        within = []
        for document in self._snapshot(collection):
            geometry = resolve_path(document, request.field)
            if not isinstance(geometry, dict) or geometry.get("type") != "Point":
                continue
            point = GeoPoint.from_geojson(geometry)
            meters = haversine_km(center.latitude, center.longitude, point.latitude, point.longitude) * 1000
            if meters <= request.max_distance_meters:
                within.append((meters, document))

        within.sort(key=lambda item: item[0])
        return [document for _, document in within[:request.limit]]

    async def aggregate(self, collection: str, request: AggregationRequest) -> Dict[str, List[Document]]:
        # Every facet reads the same snapshot.
        snapshot = self._snapshot(collection)
        return {name: self._run_facet(snapshot, facet) for name, facet in request.facets.items()}

    def _run_facet(self, documents: List[Document], facet: Any) -> List[Document]:
        if isinstance(facet, GroupCount):
            counts: Dict[Any, int] = {}
            for document in documents:
                key = _group_key(resolve_path(document, facet.field))
                counts[key] = counts.get(key, 0) + 1
            groups = [{"_id": key, "count": count} for key, count in counts.items()]
            sort_field = "count" if facet.sort_by == "count" else "_id"
            return sort_documents(groups, SortSpec(field=sort_field, direction=facet.direction))

        if isinstance(facet, NumericSummary):
            if not documents:
                return []
            values = [
                value for value in (resolve_path(doc, facet.field) for doc in documents)
                if isinstance(value, (int, float)) and not isinstance(value, bool)
            ]
            return [{
                "_id": None,
                facet.avg_name: sum(values) / len(values) if values else None,
                facet.min_name: min(values) if values else None,
                facet.max_name: max(values) if values else None,
                facet.count_name: len(documents),
            }]

        if isinstance(facet, TopN):
            ranked = sort_documents(documents, facet.sort)[:facet.limit]
            if not facet.projection:
                return ranked
            projected = []
            for document in ranked:
                row = {"_id": document.get("_id")}
                for field in facet.projection:
                    value = resolve_path(document, field)
                    if value is not _MISSING:
                        row[field] = value
                projected.append(row)
            return projected

        raise DocumentStoreError(f"Unsupported facet: {type(facet).__name__}")

    async def find_one(self, collection: str, filter_spec: FilterSpec) -> Optional[Document]:
        for document in self._snapshot(collection):
            if matches(document, filter_spec):
                return document
        return None

    async def insert_one(self, collection: str, document: Document) -> Document:
        stored = copy.deepcopy(document)
        stored.setdefault("_id", new_object_id())
        with self._lock:
            self._collections.setdefault(collection, {})[stored["_id"]] = stored
        return copy.deepcopy(stored)

    async def update_one(self, collection: str, filter_spec: FilterSpec, fields: Document) -> Optional[Document]:
        """Set ``fields`` (dotted paths allowed) on the first match; return it updated."""
        with self._lock:
            for document in self._collections.get(collection, {}).values():
                if matches(document, filter_spec):
                    for path, value in fields.items():
                        _set_path(document, path, copy.deepcopy(value))
                    return copy.deepcopy(document)
        return None

    async def delete_one(self, collection: str, filter_spec: FilterSpec) -> bool:
        with self._lock:
            bucket = self._collections.get(collection, {})
            for key, document in bucket.items():
                if matches(document, filter_spec):
                    del bucket[key]
                    return True
        return False

    async def delete_many(self, collection: str, filter_spec: FilterSpec) -> int:
        with self._lock:
            bucket = self._collections.get(collection, {})
            doomed = [key for key, document in bucket.items() if matches(document, filter_spec)]
            for key in doomed:
                del bucket[key]
        return len(doomed)

    async def ping(self) -> bool:
        return True
