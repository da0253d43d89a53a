from abc import abstractmethod
from typing import Any

import httpx
from shared.clients.rag.models.Scroll import ScrollResult
from shared.clients.rag.models.VectorPoint import IndexStats, QueryMatch, VectorRecord
from shared.clients.ClientInterface import ClientInterface

from shared.helper.HelperConfig import HelperConfig

# Upper bound most engines accept for a single query's top_k
MAX_TOP_K = 10000
SCROLL_PAGE_SIZE = 1000


class RAGClientInterface(ClientInterface):
    """Vector index client: upsert, similarity query and filtered delete/list.

    Both logical collections (document chunks and chat messages) live in the
    same index and are told apart by metadata. Filters are plain equality maps
    ({"botId": 3, "userId": 7}) combined with AND; each engine translates them
    into its own filter syntax.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self.vector_size = helper_config.get_int_val(f"{self.get_client_type().upper()}_VECTOR_SIZE", default=512)
        self.distance = helper_config.get_string_val(f"{self.get_client_type().upper()}_DISTANCE", default="cosine")

    ##########################################
    ############### CHECKER ##################
    ##########################################

    @abstractmethod
    def supports_native_filter_delete(self) -> bool:
        """Whether the engine can delete by metadata filter in a single request."""
        pass

    @abstractmethod
    def supports_filtered_listing(self) -> bool:
        """Whether the engine can list records by metadata filter without a query vector."""
        pass

    def _validate_vector(self, vector: list[float]) -> None:
        if len(vector) != self.vector_size:
            raise ValueError(
                f"Vector has dimension {len(vector)}, index {self.get_engine_name()} expects {self.vector_size}."
            )

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "rag"
        """
        return "rag"

    def zero_vector(self) -> list[float]:
        """Dummy query vector used to enumerate records by filter on engines without a listing API."""
        return [0.0] * self.vector_size

    def _get_control_base_url(self) -> str | None:
        """Base URL for collection management, if it differs from the data plane. None means same host."""
        return None

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_upsert(self) -> str:
        """Returns the endpoint path for upserting records."""
        pass

    @abstractmethod
    def _get_endpoint_query(self) -> str:
        """Returns the endpoint path for similarity queries."""
        pass

    @abstractmethod
    def _get_endpoint_delete(self) -> str:
        """Returns the endpoint path for deleting records (by ids or, where supported, by filter)."""
        pass

    @abstractmethod
    def _get_endpoint_stats(self) -> str:
        """Returns the endpoint path for index statistics."""
        pass

    @abstractmethod
    def _get_endpoint_check_collection_existence(self) -> str:
        """Returns the endpoint path for the collection/index existence check."""
        pass

    @abstractmethod
    def _get_endpoint_create_collection(self) -> str:
        """Returns the endpoint path for collection/index creation."""
        pass

    def _get_endpoint_scroll(self) -> str:
        """Returns the endpoint path for filtered listing. Only engines with native listing override it."""
        raise NotImplementedError(f"{self.get_engine_name()} has no filtered listing endpoint.")

    ################ METHODS ##################
    def _get_method_upsert(self) -> str:
        return "POST"

    def _get_method_stats(self) -> str:
        return "POST"

    def _get_method_create_collection(self) -> str:
        return "PUT"

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def translate_filter(self, filter: dict[str, Any]) -> Any:
        """Translate an equality map into the engine's filter syntax.

        Args:
            filter (dict[str, Any]): Field → required value. Empty means "no filter".

        Returns:
            Any: Engine-specific filter object, or None for no filter.
        """
        pass

    @abstractmethod
    def get_upsert_payload(self, records: list[VectorRecord]) -> dict:
        """Builds the request body for a batch upsert."""
        pass

    @abstractmethod
    def get_query_payload(self, vector: list[float], filter: dict[str, Any] | None, top_k: int) -> dict:
        """Builds the request body for a similarity query that includes metadata."""
        pass

    @abstractmethod
    def get_delete_ids_payload(self, ids: list[str]) -> dict:
        """Builds the request body for deleting records by id."""
        pass

    def get_delete_filter_payload(self, filter: dict[str, Any]) -> dict:
        """Builds the request body for a native filtered delete. Only engines with native support override it."""
        raise NotImplementedError(f"{self.get_engine_name()} has no native filtered delete.")

    def get_scroll_payload(self, filter: dict[str, Any], limit: int, offset: str | None = None) -> dict:
        """Builds the request body for one page of a filtered listing."""
        raise NotImplementedError(f"{self.get_engine_name()} has no filtered listing endpoint.")

    @abstractmethod
    def get_create_collection_payload(self) -> dict:
        """Builds the request body for collection/index creation."""
        pass

    ################ RESPONSE PARSER ##################
    @abstractmethod
    def extract_query_matches(self, raw_response: dict) -> list[QueryMatch]:
        """Extracts ranked matches from a raw query response."""
        pass

    @abstractmethod
    def extract_stats(self, raw_response: dict) -> IndexStats:
        """Extracts index statistics from a raw stats response."""
        pass

    @abstractmethod
    def extract_existence(self, response: httpx.Response) -> bool:
        """Interprets the existence check response."""
        pass

    def extract_scroll_content(self, raw_response: dict) -> ScrollResult:
        """Extracts one listing page from a raw scroll response."""
        raise NotImplementedError(f"{self.get_engine_name()} has no filtered listing endpoint.")

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_existence_check(self) -> bool:
        """Check if the collection/index exists in the backend.

        Returns:
            bool: True if it exists, False otherwise.
        """
        resp = await self.do_request(
            method="GET",
            endpoint=self._get_endpoint_check_collection_existence(),
            base_url=self._get_control_base_url(),
        )
        return self.extract_existence(resp)

    async def do_create_collection(self) -> httpx.Response:
        """Create the collection/index with the configured dimensionality and distance.

        Returns:
            httpx.Response: The response from the create request.
        """
        self.logging.info(
            "Creating %s collection with dimension %d (%s).",
            self.get_engine_name(), self.vector_size, self.distance,
        )
        return await self.do_request(
            method=self._get_method_create_collection(),
            json=self.get_create_collection_payload(),
            endpoint=self._get_endpoint_create_collection(),
            base_url=self._get_control_base_url(),
            raise_on_error=True,
        )

    async def do_upsert_batch(self, records: list[VectorRecord]) -> None:
        """Write one or many records in a single request. Re-upserting an id overwrites it.

        Args:
            records (list[VectorRecord]): Records to write; vectors must match the index dimensionality.

        Raises:
            ValueError: If a vector has the wrong dimensionality.
            ClientRequestError: If the backend rejects the request.
        """
        if not records:
            return
        for record in records:
            self._validate_vector(record.values)
        await self.do_request(
            method=self._get_method_upsert(),
            json=self.get_upsert_payload(records),
            endpoint=self._get_endpoint_upsert(),
            raise_on_error=True,
        )
        self.logging.debug("Upserted %d records into %s.", len(records), self.get_engine_name())

    async def do_query_by_vector(self, vector: list[float], filter: dict[str, Any] | None = None, top_k: int = 5) -> list[QueryMatch]:
        """Return up to top_k records ranked by similarity, each with its stored metadata.

        Args:
            vector (list[float]): The query vector.
            filter (dict[str, Any] | None): Equality map over metadata (AND semantics).
            top_k (int): Maximum number of matches.

        Returns:
            list[QueryMatch]: Matches, best first.
        """
        self._validate_vector(vector)
        top_k = max(1, min(top_k, MAX_TOP_K))
        resp = await self.do_request(
            method="POST",
            json=self.get_query_payload(vector, filter or None, top_k),
            endpoint=self._get_endpoint_query(),
            raise_on_error=True,
        )
        return self.extract_query_matches(resp.json())[:top_k]

    async def do_delete_ids(self, ids: list[str]) -> None:
        """Delete records by id in one request.

        Args:
            ids (list[str]): Application-level record ids.
        """
        if not ids:
            return
        await self.do_request(
            method="POST",
            json=self.get_delete_ids_payload(ids),
            endpoint=self._get_endpoint_delete(),
            raise_on_error=True,
        )

    async def do_delete_by_filter(self, filter: dict[str, Any]) -> int | None:
        """Delete every record matching the filter.

        Uses the engine's native filtered delete when available; otherwise
        enumerates matching ids with a zero-vector query and deletes them in one
        batch.

        Args:
            filter (dict[str, Any]): Equality map. Must not be empty.

        Returns:
            int | None: Number of deleted records when known, None for native deletes.

        Raises:
            ValueError: If the filter is empty.
        """
        if not filter:
            raise ValueError("Refusing to delete with an empty filter.")
        if self.supports_native_filter_delete():
            await self.do_request(
                method="POST",
                json=self.get_delete_filter_payload(filter),
                endpoint=self._get_endpoint_delete(),
                raise_on_error=True,
            )
            self.logging.debug("Deleted records matching %s from %s.", filter, self.get_engine_name())
            return None

        matches = await self.do_query_by_vector(self.zero_vector(), filter=filter, top_k=MAX_TOP_K)
        ids = [match.id for match in matches]
        await self.do_delete_ids(ids)
        self.logging.debug("Deleted %d records matching %s from %s.", len(ids), filter, self.get_engine_name())
        return len(ids)

    async def do_scroll(self, filter: dict[str, Any], limit: int, offset: str | None = None) -> ScrollResult:
        """Fetch a single page of a filtered listing.

        Args:
            filter (dict[str, Any]): Equality map.
            limit (int): Page size.
            offset (str | None): Cursor from the previous page; None starts at the beginning.

        Returns:
            ScrollResult: The page, including next_page_offset when more pages exist.
        """
        resp = await self.do_request(
            method="POST",
            json=self.get_scroll_payload(filter, limit, offset),
            endpoint=self._get_endpoint_scroll(),
            raise_on_error=True,
        )
        return self.extract_scroll_content(resp.json())

    async def do_list_by_filter(self, filter: dict[str, Any], limit: int) -> list[QueryMatch]:
        """List up to limit records matching the filter, in no meaningful order.

        Pages through the native listing API when available. Otherwise falls
        back to a zero-vector similarity query, whose ranking carries no meaning.

        Args:
            filter (dict[str, Any]): Equality map.
            limit (int): Maximum number of records.

        Returns:
            list[QueryMatch]: Matching records.
        """
        if not self.supports_filtered_listing():
            return await self.do_query_by_vector(self.zero_vector(), filter=filter, top_k=limit)

        collected: list[QueryMatch] = []
        offset: str | None = None
        while len(collected) < limit:
            page = await self.do_scroll(filter, min(SCROLL_PAGE_SIZE, limit - len(collected)), offset)
            collected.extend(page.result)
            offset = page.next_page_offset
            if not offset:
                break
        return collected[:limit]

    async def do_describe_stats(self) -> IndexStats:
        """Return summary statistics of the index.

        Returns:
            IndexStats: Total record count and dimensionality.
        """
        method = self._get_method_stats()
        resp = await self.do_request(
            method=method,
            json={} if method == "POST" else None,
            endpoint=self._get_endpoint_stats(),
            raise_on_error=True,
        )
        return self.extract_stats(resp.json())
