import asyncio
import json
from typing import Any, Dict, List, Optional, Sequence, Tuple

from appwrite.client import Client
from appwrite.exception import AppwriteException
from appwrite.id import ID
from appwrite.query import Query
from appwrite.services.databases import Databases
from appwrite.services.functions import Functions
from requests import RequestException

from classpulse.config.settings import Settings, settings
from classpulse.services.data_source import DataSourceError, Eq, Filter, In, IsNull, Order, QueryResult, Row


class AppwriteServiceError(Exception):
    pass


class AppwriteDataSource:
    """``DataSource`` over Appwrite: collections as tables, Functions as aggregation functions.

    The Appwrite SDK is synchronous, so every call runs in a worker thread.
    SDK and transport errors come back as ``QueryResult`` errors instead of
    exceptions.
    """

    def __init__(
        self,
        endpoint: str,
        project_id: str,
        api_key: str,
        database_id: str,
        collections: Dict[str, str],
        functions: Dict[str, str],
        page_size: int = 500,
    ) -> None:
        if not endpoint:
            raise AppwriteServiceError("Missing APPWRITE_ENDPOINT in environment")
        if not project_id:
            raise AppwriteServiceError("Missing APPWRITE_PROJECT_ID in environment")
        if not api_key:
            raise AppwriteServiceError("Missing APPWRITE_API_KEY in environment")
        if not database_id:
            raise AppwriteServiceError("Missing APPWRITE_DATABASE_ID in environment")
        if page_size < 1:
            raise AppwriteServiceError("QUERY_PAGE_SIZE must be at least 1")

        self.database_id = database_id
        self.collections = dict(collections)
        self.function_ids = dict(functions)
        self.page_size = page_size

        client = Client()
        client.set_endpoint(endpoint.rstrip("/"))
        client.set_project(project_id)
        client.set_key(api_key)

        self.db = Databases(client)
        self.functions = Functions(client)

    @classmethod
    def from_settings(cls, config: Settings = settings) -> "AppwriteDataSource":
        return cls(
            endpoint=config.appwrite_endpoint,
            project_id=config.appwrite_project_id,
            api_key=config.appwrite_api_key,
            database_id=config.appwrite_database_id,
            collections=config.collections,
            functions=config.functions,
            page_size=config.query_page_size,
        )

    @staticmethod
    def _row(doc: Dict[str, Any]) -> Row:
        row = dict(doc)
        if "$id" in row:
            row["id"] = row["$id"]
        return row

    @staticmethod
    def _column(name: str) -> str:
        return "$id" if name == "id" else name

    def _collection(self, table: str) -> str:
        try:
            return self.collections[table]
        except KeyError as exc:
            raise AppwriteServiceError(f"No collection configured for table '{table}'") from exc

    def _function(self, name: str) -> str:
        try:
            return self.function_ids[name]
        except KeyError as exc:
            raise AppwriteServiceError(f"No function configured for '{name}'") from exc

    def _queries(self, filters: Sequence[Filter], ordering: Sequence[Order]) -> List[str]:
        queries: List[str] = []
        for item in filters:
            if isinstance(item, Eq):
                queries.append(Query.equal(self._column(item.column), [item.value]))
            elif isinstance(item, In):
                queries.append(Query.equal(self._column(item.column), list(item.values)))
            elif isinstance(item, IsNull):
                queries.append(Query.is_null(self._column(item.column)))
            else:
                raise AppwriteServiceError(f"Unsupported filter: {item!r}")
        for order in ordering:
            column = self._column(order.column)
            queries.append(Query.order_asc(column) if order.ascending else Query.order_desc(column))
        return queries

    def _list_documents(self, collection_id: str, queries: List[str]) -> List[Dict]:
        result = self.db.list_documents(self.database_id, collection_id, queries=queries)
        return list(result.get("documents", []))

    def _query_table(
        self,
        collection_id: str,
        queries: List[str],
        range: Optional[Tuple[int, int]],
    ) -> List[Row]:
        if range is not None:
            start, end = range
            docs = self._list_documents(
                collection_id,
                [*queries, Query.limit(max(end - start + 1, 0)), Query.offset(start)],
            )
            return [self._row(doc) for doc in docs]

        rows: List[Row] = []
        offset = 0
        while True:
            docs = self._list_documents(collection_id, [*queries, Query.limit(self.page_size), Query.offset(offset)])
            rows.extend(self._row(doc) for doc in docs)
            if len(docs) < self.page_size:
                return rows
            offset += self.page_size

    def _execute_function(self, function_id: str, name: str, args: Dict[str, Any]) -> QueryResult:
        execution = self.functions.create_execution(function_id, json.dumps(args))
        status = str(execution.get("status") or "")
        status_code = int(execution.get("responseStatusCode") or 0)
        body = execution.get("responseBody") or ""

        if status == "failed" or status_code >= 400:
            message = body or execution.get("errors") or f"{name} execution failed"
            return QueryResult(error=DataSourceError(str(message), code=status_code or None))

        if not body:
            return QueryResult(data=None)
        try:
            payload = json.loads(body)
        except ValueError:
            return QueryResult(error=DataSourceError(f"{name} returned a non-JSON body"))

        if isinstance(payload, dict):
            error = payload.get("error")
            if error:
                message = error.get("message") if isinstance(error, dict) else error
                return QueryResult(error=DataSourceError(str(message)))
            payload = payload.get("data")
        return QueryResult(data=payload)

    async def run_aggregation_function(self, name: str, args: Dict[str, Any]) -> QueryResult:
        function_id = self._function(name)
        try:
            return await asyncio.to_thread(self._execute_function, function_id, name, args)
        except AppwriteException as exc:
            return QueryResult(error=DataSourceError(str(exc), code=getattr(exc, "code", None)))
        except RequestException as exc:
            return QueryResult(error=DataSourceError(str(exc)))

    async def run_table_query(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        ordering: Sequence[Order] = (),
        range: Optional[Tuple[int, int]] = None,
    ) -> QueryResult:
        collection_id = self._collection(table)
        queries = self._queries(filters, ordering)
        try:
            rows = await asyncio.to_thread(self._query_table, collection_id, queries, range)
        except AppwriteException as exc:
            return QueryResult(error=DataSourceError(str(exc), code=getattr(exc, "code", None)))
        except RequestException as exc:
            return QueryResult(error=DataSourceError(str(exc)))
        return QueryResult(data=rows)

    async def insert_row(self, table: str, row: Row) -> QueryResult:
        collection_id = self._collection(table)
        try:
            doc = await asyncio.to_thread(
                self.db.create_document,
                self.database_id,
                collection_id,
                ID.unique(),
                row,
            )
        except AppwriteException as exc:
            return QueryResult(error=DataSourceError(str(exc), code=getattr(exc, "code", None)))
        except RequestException as exc:
            return QueryResult(error=DataSourceError(str(exc)))
        return QueryResult(data=self._row(doc))
