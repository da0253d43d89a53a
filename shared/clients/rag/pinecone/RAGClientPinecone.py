"""Pinecone implementation of RAGClientInterface over the Pinecone REST API.

The data plane (upsert/query/delete/stats) talks to the index host; index
creation and the existence check use the control plane. Serverless indexes
cannot delete or list by metadata filter, so both go through the zero-vector
query shim of the base class.
"""

from typing import Any

import httpx

from shared.helper.HelperConfig import HelperConfig
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.VectorPoint import IndexStats, QueryMatch, VectorRecord
from shared.exceptions import ClientRequestError
from shared.models.config import EnvConfig

PINECONE_API_VERSION = "2024-07"


class RAGClientPinecone(RAGClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default=None, val_type="string")
        self._api_key = self.get_config_val("API_KEY", default=None, val_type="string")
        self._index_name = self.get_config_val("INDEX", default="chatbot", val_type="string")
        self._namespace = self.get_config_val("NAMESPACE", default="", val_type="string")
        self._control_url = self.get_config_val("CONTROL_URL", default="https://api.pinecone.io", val_type="string")
        self._cloud = self.get_config_val("CLOUD", default="aws", val_type="string")
        self._region = self.get_config_val("REGION", default="us-east-1", val_type="string")

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def supports_native_filter_delete(self) -> bool:
        return False

    def supports_filtered_listing(self) -> bool:
        return False

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Pinecone"

    def _get_control_base_url(self) -> str | None:
        return self._control_url

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=None),
            EnvConfig(env_key="API_KEY", val_type="string", default=None),
            EnvConfig(env_key="INDEX", val_type="string", default="chatbot"),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        return {"Api-Key": self._api_key, "X-Pinecone-API-Version": PINECONE_API_VERSION}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/describe_index_stats"

    def _get_endpoint_upsert(self) -> str:
        return "/vectors/upsert"

    def _get_endpoint_query(self) -> str:
        return "/query"

    def _get_endpoint_delete(self) -> str:
        return "/vectors/delete"

    def _get_endpoint_stats(self) -> str:
        return "/describe_index_stats"

    def _get_endpoint_check_collection_existence(self) -> str:
        return f"/indexes/{self._index_name}"

    def _get_endpoint_create_collection(self) -> str:
        return "/indexes"

    ################ METHODS ##################
    def _get_method_create_collection(self) -> str:
        return "POST"

    ##########################################
    ########### PAYLOAD BUILDER ##############
    ##########################################

    def _with_namespace(self, payload: dict) -> dict:
        if self._namespace:
            payload["namespace"] = self._namespace
        return payload

    def translate_filter(self, filter: dict[str, Any]) -> Any:
        if not filter:
            return None
        return {key: {"$eq": value} for key, value in filter.items()}

    def get_upsert_payload(self, records: list[VectorRecord]) -> dict:
        vectors = [
            {"id": record.id, "values": record.values, "metadata": _drop_nulls(record.metadata)}
            for record in records
        ]
        return self._with_namespace({"vectors": vectors})

    def get_query_payload(self, vector: list[float], filter: dict[str, Any] | None, top_k: int) -> dict:
        payload: dict = {
            "vector": vector,
            "topK": top_k,
            "includeMetadata": True,
            "includeValues": False,
        }
        translated = self.translate_filter(filter or {})
        if translated:
            payload["filter"] = translated
        return self._with_namespace(payload)

    def get_delete_ids_payload(self, ids: list[str]) -> dict:
        return self._with_namespace({"ids": ids})

    def get_create_collection_payload(self) -> dict:
        return {
            "name": self._index_name,
            "dimension": self.vector_size,
            "metric": self.distance.lower(),
            "spec": {"serverless": {"cloud": self._cloud, "region": self._region}},
        }

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    def extract_query_matches(self, raw_response: dict) -> list[QueryMatch]:
        return [
            QueryMatch(
                id=match.get("id", ""),
                score=match.get("score") or 0.0,
                metadata=match.get("metadata") or {},
            )
            for match in raw_response.get("matches") or []
        ]

    def extract_stats(self, raw_response: dict) -> IndexStats:
        return IndexStats(
            total_record_count=raw_response.get("totalVectorCount", 0),
            dimension=raw_response.get("dimension"),
        )

    def extract_existence(self, response: httpx.Response) -> bool:
        if response.status_code == 200:
            return True
        if response.status_code == 404:
            return False
        raise ClientRequestError(
            f"Existence check for Pinecone index {self._index_name!r} failed with status {response.status_code}.",
            status_code=response.status_code,
        )


def _drop_nulls(metadata: dict[str, Any]) -> dict[str, Any]:
    # Pinecone rejects null metadata values
    return {key: value for key, value in metadata.items() if value is not None}
