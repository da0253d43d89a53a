from shared.helper.HelperConfig import HelperConfig
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface

class EmbedClientManager:
    """
    Manager class to instantiate the configured embedding client.
    """

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.client = self._initialize_client()

    def _get_engine_from_env(self) -> str:
        """
        Reads the embedding engine from EMBED_ENGINE (default: "openai").

        Returns:
            str: Capitalised engine name (e.g. "Openai").
        """
        engine = self.helper_config.get_string_val("EMBED_ENGINE", default="openai")
        return engine.strip().lower().capitalize()

    def _initialize_client(self) -> EmbedClientInterface | None:
        """
        Instantiates the embedding client for the configured engine.

        Returns:
            EmbedClientInterface | None: The instantiated client, or None when EMBED_ENGINE is "none"
                (only the local fallback embedding is used).

        Raises:
            ValueError: If the engine is unsupported or cannot be imported.
        """
        engine = self._get_engine_from_env()
        if engine == "None":
            self.logging.info("EMBED_ENGINE is 'none', using the local fallback embedding only.")
            return None
        class_name = f"EmbedClient{engine}"
        try:
            module = __import__(
                f"shared.clients.embed.{engine.lower()}.{class_name}",
                fromlist=[class_name],
            )
            client_class = getattr(module, class_name)
        except (ImportError, AttributeError) as e:
            raise ValueError(f"Unsupported Embed engine specified: '{engine}'. Error: {e}")
        client = client_class(helper_config=self.helper_config)
        self.logging.debug("Instantiated Embed client for engine: %s", engine)
        return client

    def get_client(self) -> EmbedClientInterface | None:
        """
        Returns the instantiated embedding client.

        Returns:
            EmbedClientInterface | None: The embedding client instance, None if disabled.
        """
        return self.client
