"""
Document store used by the controllers.

Two backends share one interface: ``Neo4jDocumentStore`` keeps every document
as a ``(:Document)`` node keyed by ``collection:id``, ``InMemoryDocumentStore``
keeps plain dicts and backs development and the test-suite.
"""

import asyncio
import copy
import logging
import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from neo4j import AsyncGraphDatabase
from neo4j.exceptions import ConstraintError
from passlib.context import CryptContext

from snapgram import config
from snapgram.realtime import RealtimeHub, build_event, get_realtime_hub

logger = logging.getLogger(__name__)


class DocumentStoreError(Exception):
    pass


class DocumentNotFoundError(DocumentStoreError):
    def __init__(self, collection: str, document_id: str):
        super().__init__(f"Document {document_id} not found in {collection}")
        self.collection = collection
        self.document_id = document_id


class DocumentConflictError(DocumentStoreError):
    def __init__(self, collection: str, document_id: str):
        super().__init__(f"Document {document_id} already exists in {collection}")
        self.collection = collection
        self.document_id = document_id


# =========================================================
# QUERIES
# =========================================================
@dataclass(frozen=True)
class QueryClause:
    method: str
    field: Optional[str] = None
    value: Any = None


class Query:
    @staticmethod
    def equal(field: str, value) -> QueryClause:
        return QueryClause("equal", field, value)

    @staticmethod
    def search(field: str, term: str) -> QueryClause:
        return QueryClause("search", field, term)

    @staticmethod
    def order_asc(field: str) -> QueryClause:
        return QueryClause("order_asc", field)

    @staticmethod
    def order_desc(field: str) -> QueryClause:
        return QueryClause("order_desc", field)

    @staticmethod
    def limit(value: int) -> QueryClause:
        return QueryClause("limit", value=value)

    @staticmethod
    def cursor_after(document_id: str) -> QueryClause:
        return QueryClause("cursor_after", value=document_id)


@dataclass
class ListPlan:
    filters: list
    order_field: str = "created_at"
    descending: bool = False
    limit: Optional[int] = None
    cursor: Optional[str] = None


_FIELD_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _safe_field(field: str) -> str:
    if not field or not _FIELD_RE.match(field):
        raise ValueError(f"Invalid field name: {field!r}")
    return field


def plan_queries(queries) -> ListPlan:
    plan = ListPlan(filters=[])
    for clause in queries or []:
        if clause.method in ("equal", "search"):
            _safe_field(clause.field)
            plan.filters.append(clause)
        elif clause.method in ("order_asc", "order_desc"):
            plan.order_field = _safe_field(clause.field)
            plan.descending = clause.method == "order_desc"
        elif clause.method == "limit":
            plan.limit = int(clause.value)
            if plan.limit < 0:
                raise ValueError(f"Invalid limit: {plan.limit}")
        elif clause.method == "cursor_after":
            plan.cursor = clause.value
        else:
            raise ValueError(f"Unsupported query method: {clause.method}")
    return plan


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# =========================================================
# STORES
# =========================================================
class DocumentStore:
    def __init__(self, hub: Optional[RealtimeHub] = None):
        self.hub = hub

    def _publish(self, collection: str, document: dict, action: str):
        if self.hub is not None:
            self.hub.publish(build_event(collection, document, action))

    async def prepare(self):
        pass

    async def close(self):
        pass

    async def create_document(self, collection: str, data: dict, document_id: Optional[str] = None) -> dict:
        raise NotImplementedError

    async def get_document(self, collection: str, document_id: str) -> dict:
        raise NotImplementedError

    async def update_document(self, collection: str, document_id: str, data: dict) -> dict:
        raise NotImplementedError

    async def delete_document(self, collection: str, document_id: str) -> dict:
        raise NotImplementedError

    async def list_documents(self, collection: str, queries=None) -> dict:
        raise NotImplementedError

    async def add_to_list(self, collection: str, document_id: str, field: str, value: str) -> dict:
        raise NotImplementedError

    async def remove_from_list(self, collection: str, document_id: str, field: str, value: str) -> dict:
        raise NotImplementedError

    async def find_one(self, collection: str, queries=None) -> Optional[dict]:
        result = await self.list_documents(collection, list(queries or []) + [Query.limit(1)])
        documents = result["documents"]
        return documents[0] if documents else None


class InMemoryDocumentStore(DocumentStore):
    """Test double for the document database."""

    def __init__(self, hub: Optional[RealtimeHub] = None):
        super().__init__(hub)
        self.collections: dict[str, dict[str, dict]] = {}
        self._sequence: dict[tuple[str, str], int] = {}
        self._counter = 0

    def reset(self):
        self.collections.clear()
        self._sequence.clear()
        self._counter = 0

    def _get(self, collection: str, document_id: str) -> dict:
        document = self.collections.get(collection, {}).get(document_id)
        if document is None:
            raise DocumentNotFoundError(collection, document_id)
        return document

    # Every operation yields once before touching state so concurrent
    # callers interleave the way they do against a remote store.
    async def create_document(self, collection, data, document_id=None):
        await asyncio.sleep(0)
        documents = self.collections.setdefault(collection, {})
        document_id = document_id or uuid.uuid4().hex
        if document_id in documents:
            raise DocumentConflictError(collection, document_id)
        now = _now()
        document = {**copy.deepcopy(data), "id": document_id, "created_at": now, "updated_at": now}
        documents[document_id] = document
        self._counter += 1
        self._sequence[(collection, document_id)] = self._counter
        self._publish(collection, copy.deepcopy(document), "create")
        return copy.deepcopy(document)

    async def get_document(self, collection, document_id):
        await asyncio.sleep(0)
        return copy.deepcopy(self._get(collection, document_id))

    async def update_document(self, collection, document_id, data):
        await asyncio.sleep(0)
        document = self._get(collection, document_id)
        document.update(copy.deepcopy(data))
        document["updated_at"] = _now()
        self._publish(collection, copy.deepcopy(document), "update")
        return copy.deepcopy(document)

    async def delete_document(self, collection, document_id):
        await asyncio.sleep(0)
        document = self._get(collection, document_id)
        del self.collections[collection][document_id]
        self._sequence.pop((collection, document_id), None)
        self._publish(collection, copy.deepcopy(document), "delete")
        return copy.deepcopy(document)

    async def list_documents(self, collection, queries=None):
        await asyncio.sleep(0)
        plan = plan_queries(queries)
        documents = [d for d in self.collections.get(collection, {}).values() if self._matches(d, plan.filters)]

        def sort_key(document):
            value = document.get(plan.order_field)
            return (value is not None, value if value is not None else "", self._sequence[(collection, document["id"])])

        documents.sort(key=sort_key, reverse=plan.descending)
        total = len(documents)

        if plan.cursor:
            positions = [i for i, d in enumerate(documents) if d["id"] == plan.cursor]
            if not positions:
                raise DocumentNotFoundError(collection, plan.cursor)
            documents = documents[positions[0] + 1:]
        if plan.limit is not None:
            documents = documents[:plan.limit]
        return {"total": total, "documents": copy.deepcopy(documents)}

    @staticmethod
    def _matches(document: dict, filters) -> bool:
        for clause in filters:
            value = document.get(clause.field)
            if clause.method == "equal":
                accepted = clause.value if isinstance(clause.value, (list, tuple, set)) else [clause.value]
                if value not in accepted:
                    return False
            elif clause.method == "search":
                if value is None or str(clause.value).lower() not in str(value).lower():
                    return False
        return True

    async def add_to_list(self, collection, document_id, field, value):
        await asyncio.sleep(0)
        document = self._get(collection, document_id)
        values = list(document.get(field) or [])
        if value not in values:
            values.append(value)
        document[field] = values
        document["updated_at"] = _now()
        self._publish(collection, copy.deepcopy(document), "update")
        return copy.deepcopy(document)

    async def remove_from_list(self, collection, document_id, field, value):
        await asyncio.sleep(0)
        document = self._get(collection, document_id)
        document[field] = [v for v in (document.get(field) or []) if v != value]
        document["updated_at"] = _now()
        self._publish(collection, copy.deepcopy(document), "update")
        return copy.deepcopy(document)


class Neo4jDocumentStore(DocumentStore):
    def __init__(self, uri: str, user: str, password: str, database: str = "neo4j", hub: Optional[RealtimeHub] = None):
        super().__init__(hub)
        self.driver = AsyncGraphDatabase.driver(uri, auth=(user, password), keep_alive=True)
        self.database = database

    async def prepare(self):
        await self.driver.verify_connectivity()
        await self.driver.execute_query(
            "CREATE CONSTRAINT document_key IF NOT EXISTS FOR (d:Document) REQUIRE d._key IS UNIQUE",
            database_=self.database,
        )
        logger.info("✅ Successfully connected to Neo4j")

    async def close(self):
        await self.driver.close()

    @staticmethod
    def _key(collection: str, document_id: str) -> str:
        return f"{collection}:{document_id}"

    @staticmethod
    def _to_document(node) -> dict:
        document = dict(node)
        document.pop("_key", None)
        document.pop("_collection", None)
        return document

    async def _run(self, query: str, params: dict):
        records, _, _ = await self.driver.execute_query(query, params, database_=self.database)
        return records

    async def _single(self, collection: str, document_id: str, query: str, params: dict) -> dict:
        records = await self._run(query, {"key": self._key(collection, document_id), **params})
        if not records:
            raise DocumentNotFoundError(collection, document_id)
        return self._to_document(records[0]["d"])

    async def create_document(self, collection, data, document_id=None):
        document_id = document_id or uuid.uuid4().hex
        now = _now()
        props = {
            **data,
            "id": document_id,
            "created_at": now,
            "updated_at": now,
            "_collection": collection,
            "_key": self._key(collection, document_id),
        }
        try:
            records = await self._run("CREATE (d:Document) SET d = $props RETURN d", {"props": props})
        except ConstraintError as e:
            raise DocumentConflictError(collection, document_id) from e
        document = self._to_document(records[0]["d"])
        self._publish(collection, document, "create")
        return document

    async def get_document(self, collection, document_id):
        return await self._single(collection, document_id, "MATCH (d:Document {_key: $key}) RETURN d", {})

    async def update_document(self, collection, document_id, data):
        query = """
        MATCH (d:Document {_key: $key})
        SET d += $data, d.updated_at = $now
        RETURN d
        """
        document = await self._single(collection, document_id, query, {"data": data, "now": _now()})
        self._publish(collection, document, "update")
        return document

    async def delete_document(self, collection, document_id):
        query = """
        MATCH (d:Document {_key: $key})
        WITH d, properties(d) AS d_props
        DETACH DELETE d
        RETURN d_props AS d
        """
        document = await self._single(collection, document_id, query, {})
        self._publish(collection, document, "delete")
        return document

    async def list_documents(self, collection, queries=None):
        plan = plan_queries(queries)
        where = ["d._collection = $collection"]
        params: dict = {"collection": collection}
        for i, clause in enumerate(plan.filters):
            field = clause.field
            if clause.method == "equal":
                values = clause.value if isinstance(clause.value, (list, tuple, set)) else [clause.value]
                where.append(f"d.`{field}` IN $v{i}")
                params[f"v{i}"] = list(values)
            else:
                where.append(f"toLower(toString(d.`{field}`)) CONTAINS toLower($v{i})")
                params[f"v{i}"] = clause.value

        count_query = f"MATCH (d:Document) WHERE {' AND '.join(where)} RETURN count(d) AS total"
        total = (await self._run(count_query, params))[0]["total"]

        order = plan.order_field
        direction = "DESC" if plan.descending else "ASC"
        if plan.cursor:
            cursor_document = await self.get_document(collection, plan.cursor)
            op = "<" if plan.descending else ">"
            where.append(
                f"(d.`{order}` {op} $cursor_value OR (d.`{order}` = $cursor_value AND d.id {op} $cursor_id))"
            )
            params["cursor_value"] = cursor_document.get(order)
            params["cursor_id"] = plan.cursor

        query = f"""
        MATCH (d:Document)
        WHERE {' AND '.join(where)}
        RETURN d
        ORDER BY d.`{order}` {direction}, d.id {direction}
        """
        if plan.limit is not None:
            query += " LIMIT $limit"
            params["limit"] = plan.limit

        records = await self._run(query, params)
        return {"total": total, "documents": [self._to_document(r["d"]) for r in records]}

    async def add_to_list(self, collection, document_id, field, value):
        field = _safe_field(field)
        query = f"""
        MATCH (d:Document {{_key: $key}})
        WITH d, coalesce(d.`{field}`, []) AS current
        SET d.`{field}` = CASE WHEN $value IN current THEN current ELSE current + $value END,
            d.updated_at = $now
        RETURN d
        """
        document = await self._single(collection, document_id, query, {"value": value, "now": _now()})
        self._publish(collection, document, "update")
        return document

    async def remove_from_list(self, collection, document_id, field, value):
        field = _safe_field(field)
        query = f"""
        MATCH (d:Document {{_key: $key}})
        SET d.`{field}` = [x IN coalesce(d.`{field}`, []) WHERE x <> $value],
            d.updated_at = $now
        RETURN d
        """
        document = await self._single(collection, document_id, query, {"value": value, "now": _now()})
        self._publish(collection, document, "update")
        return document


_db: Optional[DocumentStore] = None


def get_db() -> DocumentStore:
    global _db
    if _db is not None:
        return _db

    hub = get_realtime_hub()
    if not config.USE_IN_MEMORY_BACKENDS and config.neo4j_configured():
        _db = Neo4jDocumentStore(
            config.NEO4J_URI,
            config.NEO4J_USER,
            config.NEO4J_PASSWORD,
            database=config.NEO4J_DATABASE,
            hub=hub,
        )
    else:
        logger.info("Using in-memory document store")
        _db = InMemoryDocumentStore(hub=hub)
    return _db


def set_db(store: Optional[DocumentStore]):
    global _db
    _db = store


# Password hashing setup
pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


def hash_password(password: str) -> str:
    if len(password) > 500:
        password = password[:500]
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if len(plain_password) > 500:
        plain_password = plain_password[:500]
    return pwd_context.verify(plain_password, hashed_password)
