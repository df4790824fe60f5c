"""
LLM completion services used to translate questions into SQL.

Two backends are supported: the OpenAI chat completions API and AWS Bedrock
through the Converse API. Both take a list of ``{"role", "content"}`` messages
and return the first completion's text.
"""

import asyncio
import json
import structlog
from typing import Dict, List, Optional, Any
from botocore.exceptions import ClientError, BotoCoreError
from openai import AsyncOpenAI, OpenAIError

from backend.utils.aws_session import (
    BEDROCK_RUNTIME,
    create_aws_client,
    get_default_retry_config,
)
from backend.utils.errors import CompletionServiceError

logger = structlog.get_logger(__name__)

Message = Dict[str, str]

HEALTH_CHECK_MESSAGES: List[Message] = [
    {"role": "user", "content": "Reply with the single word: ok"}
]


class CompletionService:
    """Common interface for chat completion backends."""

    provider = "unknown"

    def __init__(self, model_id: str, max_tokens: int = 150, temperature: float = 0.0):
        self.model_id = model_id
        self.max_tokens = max_tokens
        self.temperature = temperature

    async def complete(self, messages: List[Message]) -> str:
        """
        Return the text of the first completion choice.

        Raises:
            CompletionServiceError: the backend failed or returned no text
        """
        raise NotImplementedError

    async def health_check(self) -> Dict[str, Any]:
        """Check if the completion backend is available and responsive."""
        try:
            await self.complete(HEALTH_CHECK_MESSAGES)
            return {"status": "healthy", "provider": self.provider, "model_id": self.model_id}
        except CompletionServiceError as e:
            logger.error("Completion service health check failed", provider=self.provider, error=e.log_message)
            return {"status": "unhealthy", "provider": self.provider, "model_id": self.model_id}


class OpenAICompletionService(CompletionService):
    """Completions via the OpenAI chat completions API."""

    provider = "openai"

    def __init__(
        self,
        api_key: Optional[str],
        model_id: str,
        max_tokens: int = 150,
        temperature: float = 0.0,
        base_url: Optional[str] = None,
        timeout: float = 60.0,
        max_retries: int = 0,
        client: Optional[AsyncOpenAI] = None,
    ):
        super().__init__(model_id, max_tokens, temperature)
        self.client = client or AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
        )
        logger.info("OpenAI completion service initialized", model_id=model_id)

    async def complete(self, messages: List[Message]) -> str:
        try:
            response = await self.client.chat.completions.create(
                model=self.model_id,
                messages=messages,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except OpenAIError as e:
            raise CompletionServiceError("OpenAI completion request failed", cause=e) from e

        choices = response.choices or []
        text = (choices[0].message.content or "").strip() if choices else ""
        if not text:
            raise CompletionServiceError("OpenAI completion returned no text")
        return text


class BedrockCompletionService(CompletionService):
    """Completions via the AWS Bedrock Converse API."""

    provider = "bedrock"

    def __init__(
        self,
        model_id: str,
        region: Optional[str] = None,
        max_tokens: int = 150,
        temperature: float = 0.0,
        timeout: float = 60.0,
        max_retries: int = 0,
        client: Any = None,
    ):
        super().__init__(model_id, max_tokens, temperature)
        self.region = region
        self.bedrock_client = client or create_aws_client(
            BEDROCK_RUNTIME,
            region_name=region,
            config=get_default_retry_config(max_attempts=max_retries + 1, read_timeout=timeout),
        )
        logger.info("Bedrock completion service initialized", model_id=model_id, region=region)

    @staticmethod
    def _convert_to_bedrock_messages(messages: List[Message]) -> Dict[str, Any]:
        """Split system prompts out and wrap the rest in Converse content blocks."""
        system = []
        converted = []
        for message in messages:
            role = message.get("role", "user").lower()
            content = message.get("content") or ""
            if not content:
                continue
            if role == "system":
                system.append({"text": content})
                continue
            if role not in {"user", "assistant"}:
                role = "user"
            converted.append({"role": role, "content": [{"text": content}]})
        return {"system": system, "messages": converted}

    def _build_inference_config(self) -> Dict[str, Any]:
        return {"maxTokens": int(self.max_tokens), "temperature": float(self.temperature)}

    @staticmethod
    def _extract_text_from_converse(response: Dict[str, Any]) -> str:
        output = (response or {}).get("output") or {}
        content = (output.get("message") or {}).get("content") or []

        text_chunks = []
        for part in content:
            if not isinstance(part, dict):
                continue
            if part.get("text"):
                text_chunks.append(part["text"])
            elif isinstance(part.get("toolUse"), dict) and "input" in part["toolUse"]:
                text_chunks.append(json.dumps(part["toolUse"]["input"]))
        return "\n".join(text_chunks).strip()

    async def complete(self, messages: List[Message]) -> str:
        payload = self._convert_to_bedrock_messages(messages)
        if not payload["messages"]:
            raise CompletionServiceError("Bedrock request has no user message")

        request = {
            "modelId": self.model_id,
            "messages": payload["messages"],
            "inferenceConfig": self._build_inference_config(),
        }
        if payload["system"]:
            request["system"] = payload["system"]

        loop = asyncio.get_running_loop()
        try:
            response = await loop.run_in_executor(None, lambda: self.bedrock_client.converse(**request))
        except ClientError as e:
            logger.warning(
                "Bedrock converse call failed",
                error_code=e.response.get("Error", {}).get("Code"),
                model_id=self.model_id,
            )
            raise CompletionServiceError("Bedrock converse call failed", cause=e) from e
        except BotoCoreError as e:
            raise CompletionServiceError("Bedrock client error", cause=e) from e

        text = self._extract_text_from_converse(response)
        if not text:
            raise CompletionServiceError("Bedrock completion returned no text")
        return text


def create_completion_service(settings) -> CompletionService:
    """Build the completion backend selected by ``settings.llm_provider``."""
    if settings.llm_provider == "bedrock":
        return BedrockCompletionService(
            model_id=settings.bedrock_model_id,
            region=settings.aws_region,
            max_tokens=settings.max_tokens,
            temperature=settings.temperature,
            timeout=settings.llm_timeout_seconds,
            max_retries=settings.llm_max_retries,
        )
    return OpenAICompletionService(
        api_key=settings.openai_api_key,
        model_id=settings.openai_model,
        max_tokens=settings.max_tokens,
        temperature=settings.temperature,
        base_url=settings.openai_base_url,
        timeout=settings.llm_timeout_seconds,
        max_retries=settings.llm_max_retries,
    )
