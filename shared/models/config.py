from pydantic import BaseModel


class EnvConfig(BaseModel):
    """
    A single client-scoped environment setting, validated when a client is constructed.

    Attributes:
        env_key (str): The raw key, expanded by the client to "{TYPE}_{ENGINE}_{KEY}" (e.g. "RAG_PINECONE_API_KEY").
        val_type (str): Expected value type: "string", "number", "bool" or "list".
        default (str | int | float | bool | list | None): Value used when the variable is unset. None marks the setting as required.
    """

    env_key: str
    val_type: str = "string"
    default: str | int | float | bool | list | None = None
