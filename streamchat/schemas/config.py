"""Client configuration schemas.

Loaded from TOML by ``streamchat.settings``. Labels hold every
user-facing string the controller writes into the thread.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from streamchat.schemas.request import HttpOptions, InteractionModel, RequestOverrides


class Labels(BaseModel):
    """User-facing strings."""

    invalid_request_error: str = Field(
        default=(
            "Unable to generate an answer for this question. "
            "Please rephrase it or try another question."
        ),
        description="Shown when the API rejects the request (HTTP 400)",
    )
    api_error_message: str = Field(
        default="Sorry, we are having some issues. Please try again later.",
        description="Shown for every other failure",
    )
    bot_name: str = Field(default="Assistant")
    user_name: str = Field(default="You")
    default_prompts_heading: str = Field(default="Not sure what to ask? Try one of these:")
    default_prompts: list[str] = Field(default_factory=list)


class ModelConfig(BaseModel):
    """Direct-to-model settings used by the LiteLLM transport."""

    model: str = Field(description="LiteLLM model identifier (e.g. 'gpt-4o-mini')")
    api_key_env: str = Field(default="", description="Environment variable holding the API key")
    api_base: str = Field(default="", description="Custom API base URL (empty = provider default)")
    system_prompt: str = Field(
        default=(
            "You are a helpful assistant. Answer concisely. When you rely on a "
            "document, cite its file name in square brackets, e.g. [policy.md]. "
            "End with up to three follow-up questions, each wrapped in << and >>."
        ),
    )
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    timeout: int = Field(default=120, gt=0, description="Timeout in seconds for the model call")


class ChatConfig(BaseModel):
    """Everything the session controller needs at construction."""

    http: HttpOptions = Field(default_factory=lambda: HttpOptions(url="http://localhost:3000"))
    interaction_model: InteractionModel = Field(
        default="chat", description="'chat' keeps a thread, 'ask' is single-turn"
    )
    overrides: RequestOverrides = Field(default_factory=RequestOverrides)
    labels: Labels = Field(default_factory=Labels)
    model: ModelConfig | None = Field(
        default=None, description="Set to talk to a model directly instead of the backend"
    )
