"""
OpenAI-compatible LLM client with strict JSON validation.
"""
import json
import logging
from typing import Optional, Type, TypeVar

from openai import OpenAI
from pydantic import BaseModel

from ..config import JudgeConfig, get_config


logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

# OpenRouter attribution headers, ignored by other providers
APP_HEADERS = {"X-Title": "gieter"}


class LLMClient:
    """
    Chat-completions client in JSON mode, validated with Pydantic.
    Talks to any OpenAI-compatible endpoint (OpenRouter by default).
    """

    def __init__(self, config: Optional[JudgeConfig] = None):
        self.config = config or get_config().judge
        self.model = self.config.model

        if not self.config.api_key:
            logger.warning("No judgment provider API key configured")
            self.client = None
        else:
            self.client = OpenAI(
                api_key=self.config.api_key,
                base_url=self.config.base_url,
                default_headers=APP_HEADERS,
            )

    def _complete_json(self, system_prompt: str, user_prompt: str) -> str:
        """One completion in JSON mode; returns the raw message text."""
        if not self.client:
            raise RuntimeError("LLM client not configured")

        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature=self.config.temperature,
            response_format={"type": "json_object"},
        )
        if response.usage is not None:
            logger.debug(
                f"{self.model}: {response.usage.prompt_tokens} prompt tokens, "
                f"{response.usage.completion_tokens} completion tokens"
            )
        return response.choices[0].message.content or ""

    def call_with_schema(
        self,
        system_prompt: str,
        user_prompt: str,
        response_model: Type[T],
    ) -> T:
        """
        Make an API call and parse response into a Pydantic model.

        Args:
            system_prompt: System context
            user_prompt: User query
            response_model: Pydantic model class to parse into

        Returns:
            Validated Pydantic model instance

        Raises:
            json.JSONDecodeError: If the response is not JSON
            ValidationError: If response doesn't match schema
            RuntimeError: If LLM not configured
        """
        text = self._complete_json(system_prompt, user_prompt)

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON from {self.model}: {e}")
            raise

        return response_model.model_validate(data)
