"""Text-generation collaborator backed by LangChain's ChatOpenAI"""
import json
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from datachat.components.error_classifier import classify_llm_error
from datachat.components.errors import MalformedGenerationOutput

logger = logging.getLogger(__name__)


@dataclass
class GenerationResult:
    """Either ``content`` (text, or decoded JSON for structured requests) or ``error``."""

    content: Any = None
    error: Optional[str] = None
    category: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class TextGenerator:
    """Sends one system + user message pair and returns the completion.

    Faults never propagate: they are classified, logged with a short
    request id, and returned as ``GenerationResult.error``.
    """

    def __init__(
        self,
        openai_api_key: str,
        model: str = "gpt-4o-mini",
        temperature: float = 0.0,
        timeout: int = 60,
        max_retries: int = 0,
        base_url: str = "",
    ):
        kwargs = dict(
            api_key=openai_api_key,
            model=model,
            temperature=temperature,
            timeout=timeout,
            max_retries=max_retries,
        )
        if base_url:
            kwargs["base_url"] = base_url
        self.model = model
        self.llm = ChatOpenAI(**kwargs)

    @classmethod
    def from_settings(cls, settings) -> "TextGenerator":
        return cls(
            openai_api_key=settings.openai_api_key,
            model=settings.openai_model,
            temperature=settings.openai_temperature,
            timeout=settings.openai_timeout,
            max_retries=settings.openai_max_retries,
            base_url=settings.openai_base_url,
        )

    @staticmethod
    def _response_format(output_shape: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "type": "json_schema",
            "json_schema": {"name": "response", "strict": True, "schema": output_shape},
        }

    def complete(
        self,
        system: str,
        user: str,
        output_shape: Optional[Dict[str, Any]] = None,
    ) -> GenerationResult:
        """Run one completion; with ``output_shape`` the reply is decoded JSON."""
        req_id = uuid.uuid4().hex[:8]
        messages = [SystemMessage(content=system), HumanMessage(content=user)]
        llm = self.llm
        if output_shape is not None:
            llm = self.llm.bind(response_format=self._response_format(output_shape))

        try:
            response = llm.invoke(messages)
        except Exception as e:
            category, user_message = classify_llm_error(e)
            logger.warning(
                "LLM call failed: req_id=%s category=%s error_class=%s message=%s",
                req_id,
                category,
                type(e).__name__,
                str(e)[:200],
            )
            return GenerationResult(error=f"{user_message} (ref: {req_id})", category=category)

        content = response.content if isinstance(response.content, str) else str(response.content)
        logger.debug("LLM response: req_id=%s chars=%d", req_id, len(content))
        if output_shape is None:
            return GenerationResult(content=content)

        try:
            return GenerationResult(content=json.loads(content))
        except ValueError as e:
            logger.warning("LLM returned invalid JSON: req_id=%s error=%s", req_id, e)
            return GenerationResult(
                error=f"Malformed structured completion: {e} (ref: {req_id})",
                category=MalformedGenerationOutput.category,
            )
