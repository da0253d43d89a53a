from abc import abstractmethod

from shared.clients.ClientInterface import ClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.chat import ChatCompletionResult, CompletionOptions, PromptMessage


class LLMClientInterface(ClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

        # chat / completion defaults
        self.chat_model = helper_config.get_string_val(f"{self.get_client_type().upper()}_CHAT_MODEL", default="gpt-4o-mini")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "llm"

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_models(self) -> str:
        """Returns the endpoint path for model listing requests (e.g. "/v1/models")."""
        pass

    @abstractmethod
    def _get_endpoint_chat(self) -> str:
        """Returns the endpoint path for chat/completion requests (e.g. "/v1/chat/completions")."""
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_chat_payload(self, messages: list[PromptMessage], options: CompletionOptions) -> dict:
        """Build the backend-specific request body for a chat/completion request.

        Args:
            messages (list[PromptMessage]): OpenAI-format messages.
            options (CompletionOptions): Model, temperature and token limit.

        Returns:
            dict: JSON-serialisable request body.
        """
        pass

    ##########################################
    ################# OTHER ##################
    ##########################################

    @abstractmethod
    def extract_chat_response(self, response_data: dict, options: CompletionOptions) -> ChatCompletionResult:
        """Extract the assistant reply and usage from a raw chat API response.

        Args:
            response_data (dict): The parsed JSON response body.
            options (CompletionOptions): The options the request was sent with.

        Returns:
            ChatCompletionResult: Reply text, model, usage and finish reason.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_generate_chat(
        self,
        messages: list[PromptMessage],
        model: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
    ) -> ChatCompletionResult:
        """Send a chat/completion request and return the assistant reply.

        Args:
            messages (list[PromptMessage]): OpenAI-format messages.
            model (str | None): Model name; falls back to LLM_CHAT_MODEL.
            temperature (float): Sampling temperature.
            max_tokens (int): Completion token limit.

        Returns:
            ChatCompletionResult: The assistant reply.

        Raises:
            ClientRequestError: If the HTTP request fails.
            ValueError: If the response does not contain a valid reply.
        """
        options = CompletionOptions(model=model or self.chat_model, temperature=temperature, max_tokens=max_tokens)
        response = await self.do_request(
            method="POST",
            endpoint=self._get_endpoint_chat(),
            json=self.get_chat_payload(messages, options),
            raise_on_error=True,
        )
        return self.extract_chat_response(response.json(), options)
