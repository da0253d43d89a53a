from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.chat import ChatCompletionResult, CompletionOptions, CompletionUsage, PromptMessage
from shared.models.config import EnvConfig


class LLMClientOpenai(LLMClientInterface):
    """Chat client for OpenAI and OpenAI-compatible (e.g. DeepSeek) /v1/chat/completions APIs."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default="https://api.openai.com", val_type="string")
        self._api_key = self.get_config_val("API_KEY", default=None, val_type="string")

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Openai"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default="https://api.openai.com"),
            EnvConfig(env_key="API_KEY", val_type="string", default=None),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        return {"Authorization": f"Bearer {self._api_key}"}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return self._get_endpoint_models()

    def _get_endpoint_models(self) -> str:
        return "/v1/models"

    def _get_endpoint_chat(self) -> str:
        return "/v1/chat/completions"

    ################ PAYLOAD BUILDER ##################
    def get_chat_payload(self, messages: list[PromptMessage], options: CompletionOptions) -> dict:
        """Build the OpenAI chat request body.

        Args:
            messages (list[PromptMessage]): OpenAI-format messages.
            options (CompletionOptions): Model, temperature and token limit.

        Returns:
            dict: {"model": "...", "messages": [...], "temperature": ..., "max_tokens": ...}
        """
        return {
            "model": options.model,
            "messages": [message.model_dump(mode="json") for message in messages],
            "temperature": options.temperature,
            "max_tokens": options.max_tokens,
        }

    ################ OTHER ##################
    def extract_chat_response(self, response_data: dict, options: CompletionOptions) -> ChatCompletionResult:
        """Extract the assistant reply from an OpenAI /v1/chat/completions response.

        Raises:
            ValueError: If the response has no choices.
        """
        choices = response_data.get("choices") or []
        if not choices:
            raise ValueError(
                "OpenAI chat response does not contain any choices. "
                "Response keys: %s" % list(response_data.keys())
            )
        choice = choices[0]
        usage = response_data.get("usage") or {}
        return ChatCompletionResult(
            message=(choice.get("message") or {}).get("content") or "",
            model=response_data.get("model") or options.model,
            usage=CompletionUsage(
                prompt_tokens=usage.get("prompt_tokens"),
                completion_tokens=usage.get("completion_tokens"),
                total_tokens=usage.get("total_tokens"),
            ),
            finish_reason=choice.get("finish_reason"),
        )
