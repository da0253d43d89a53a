import uuid
from typing import Any

import httpx

from shared.helper.HelperConfig import HelperConfig
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.Scroll import ScrollResult
from shared.clients.rag.models.VectorPoint import IndexStats, QueryMatch, VectorRecord
from shared.exceptions import ClientRequestError
from shared.models.config import EnvConfig

# Fixed namespace for deterministic UUIDv5 point IDs.
# Changing this value would invalidate all existing point IDs in Qdrant.
_POINT_ID_NAMESPACE = uuid.UUID("6f4d3c2b-1a09-4e5f-8b7c-6d5e4f3a2b1c")

# Payload key holding the application-level record id
RECORD_ID_KEY = "record_id"


def to_point_id(record_id: str) -> str:
    """Map an application record id (e.g. "doc_3_chunk_0") to the UUID Qdrant requires."""
    return str(uuid.uuid5(_POINT_ID_NAMESPACE, record_id))


class RAGClientQdrant(RAGClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default=None, val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")
        self._collection_name = self.get_config_val("COLLECTION", default="chatbot", val_type="string")

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def supports_native_filter_delete(self) -> bool:
        return True

    def supports_filtered_listing(self) -> bool:
        return True

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Qdrant"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=None),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
            EnvConfig(env_key="COLLECTION", val_type="string", default="chatbot")
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if self._api_key:
            return {"api-key": f"{self._api_key}"}
        else:
            return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/healthz"

    def _get_endpoint_upsert(self) -> str:
        return f"/collections/{self._collection_name}/points?wait=true"

    def _get_endpoint_query(self) -> str:
        return f"/collections/{self._collection_name}/points/search"

    def _get_endpoint_delete(self) -> str:
        return f"/collections/{self._collection_name}/points/delete?wait=true"

    def _get_endpoint_scroll(self) -> str:
        return f"/collections/{self._collection_name}/points/scroll"

    def _get_endpoint_stats(self) -> str:
        return f"/collections/{self._collection_name}"

    def _get_endpoint_check_collection_existence(self) -> str:
        return f"/collections/{self._collection_name}/exists"

    def _get_endpoint_create_collection(self) -> str:
        return f"/collections/{self._collection_name}"

    ################ METHODS ##################
    def _get_method_upsert(self) -> str:
        return "PUT"

    def _get_method_stats(self) -> str:
        return "GET"

    ##########################################
    ########### PAYLOAD BUILDER ##############
    ##########################################

    def translate_filter(self, filter: dict[str, Any]) -> Any:
        if not filter:
            return None
        return {"must": [{"key": key, "match": {"value": value}} for key, value in filter.items()]}

    def get_upsert_payload(self, records: list[VectorRecord]) -> dict:
        points = [
            {
                "id": to_point_id(record.id),
                "vector": record.values,
                "payload": {**record.metadata, RECORD_ID_KEY: record.id},
            }
            for record in records
        ]
        return {"points": points}

    def get_query_payload(self, vector: list[float], filter: dict[str, Any] | None, top_k: int) -> dict:
        payload: dict = {
            "vector": vector,
            "limit": top_k,
            "with_payload": True,
            "with_vector": False,
        }
        translated = self.translate_filter(filter or {})
        if translated:
            payload["filter"] = translated
        return payload

    def get_delete_ids_payload(self, ids: list[str]) -> dict:
        return {"points": [to_point_id(record_id) for record_id in ids]}

    def get_delete_filter_payload(self, filter: dict[str, Any]) -> dict:
        return {"filter": self.translate_filter(filter)}

    def get_scroll_payload(self, filter: dict[str, Any], limit: int, offset: str | None = None) -> dict:
        payload: dict = {
            "limit": limit,
            "with_payload": True,
            "with_vector": False,
        }
        translated = self.translate_filter(filter)
        if translated:
            payload["filter"] = translated
        if offset is not None:
            payload["offset"] = offset
        return payload

    def get_create_collection_payload(self) -> dict:
        return {"vectors": {"size": self.vector_size, "distance": self.distance.capitalize()}}

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    def _to_match(self, point: dict) -> QueryMatch:
        payload = dict(point.get("payload") or {})
        record_id = payload.pop(RECORD_ID_KEY, None) or str(point.get("id", ""))
        return QueryMatch(id=record_id, score=point.get("score") or 0.0, metadata=payload)

    def extract_query_matches(self, raw_response: dict) -> list[QueryMatch]:
        return [self._to_match(point) for point in raw_response.get("result") or []]

    def extract_scroll_content(self, raw_response: dict) -> ScrollResult:
        result = raw_response.get("result") or {}
        next_offset = result.get("next_page_offset")
        return ScrollResult(
            result=[self._to_match(point) for point in result.get("points") or []],
            next_page_offset=str(next_offset) if next_offset is not None else None,
        )

    def extract_stats(self, raw_response: dict) -> IndexStats:
        result = raw_response.get("result") or {}
        vectors = ((result.get("config") or {}).get("params") or {}).get("vectors") or {}
        return IndexStats(
            total_record_count=result.get("points_count") or 0,
            dimension=vectors.get("size"),
        )

    def extract_existence(self, response: httpx.Response) -> bool:
        if response.status_code != 200:
            raise ClientRequestError(
                f"Existence check for Qdrant collection {self._collection_name!r} failed with status {response.status_code}.",
                status_code=response.status_code,
            )
        return bool(response.json().get("result", {}).get("exists"))
