from abc import abstractmethod

from shared.clients.ClientInterface import ClientInterface
from shared.exceptions import ProviderUnavailableError
from shared.helper.HelperConfig import HelperConfig


class EmbedClientInterface(ClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

        # model config
        self.embed_model = helper_config.get_string_val(f"{self.get_client_type().upper()}_MODEL", default="text-embedding-3-small")
        self.embed_model_max_chars = helper_config.get_int_val(f"{self.get_client_type().upper()}_MODEL_MAX_CHARS", default=8000)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "embed"
        """
        return "embed"

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_models(self) -> str:
        """
        Returns the endpoint path for model listing requests.

        Returns:
            str: The endpoint path for model listing requests (e.g. "/v1/models")
        """
        pass

    @abstractmethod
    def get_endpoint_embedding(self) -> str:
        """
        Returns the endpoint path for embedding requests.

        Returns:
            str: The endpoint path for embedding requests (e.g. "/v1/embeddings")
        """
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_embed_payload(self, texts: list[str]) -> dict:
        """Build the backend-specific request body for an embedding request.

        Args:
            texts (list[str]): The texts to embed.

        Returns:
            dict: JSON-serialisable request body (e.g. {"model": "...", "input": [...]}).
        """
        pass

    ##########################################
    ################# OTHER ##################
    ##########################################

    @abstractmethod
    def extract_embeddings_from_response(self, response_data: dict) -> list[list[float]]:
        """Extract embedding vectors from a raw embedding API response.

        Args:
            response_data (dict): The parsed JSON response body.

        Returns:
            list[list[float]]: Embedding vectors in the same order as the input texts.

        Raises:
            ProviderUnavailableError: If the response carries no usable embeddings.
        """
        pass

    def _truncate(self, text: str) -> str:
        """Cut text to the model's configured character budget."""
        if self.embed_model_max_chars and len(text) > self.embed_model_max_chars:
            return text[: self.embed_model_max_chars]
        return text

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_embed(self, texts: list[str] | str) -> list[list[float]]:
        """Send an embedding request and return the extracted vectors.

        Normalises the input to a list, builds the backend-specific payload via
        get_embed_payload(), sends the request, validates the status, and extracts
        the vectors via extract_embeddings_from_response().

        Args:
            texts (list[str] | str): One or more texts to embed.

        Returns:
            list[list[float]]: Embedding vectors in the same order as the inputs.

        Raises:
            ProviderUnavailableError: If the request fails or the response has no embeddings.
        """
        texts = [texts] if isinstance(texts, str) else texts
        body = self.get_embed_payload([self._truncate(t) for t in texts])
        response = await self.do_request(method="POST", endpoint=self.get_endpoint_embedding(), json=body)
        if response.status_code != 200:
            self.logging.error(
                "Embedding request failed: status %d, body: %s",
                response.status_code,
                response.text[:200],
            )
            raise ProviderUnavailableError("Embedding request failed with status %d." % response.status_code)
        return self.extract_embeddings_from_response(response.json())
