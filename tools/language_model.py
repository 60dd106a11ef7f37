"""
Language model adapters used by the chat turn executor.

Both adapters take the full session history plus per-invocation system
instructions, generation parameters and supporting documents, and return
the reply text. Any provider failure surfaces as ModelInvocationError.
"""

import time
from typing import Any, Dict, List, Sequence

import google.generativeai as genai
import openai
from openai import AsyncOpenAI

from errors import ModelInvocationError
from logger import get_logger
from models import GenerationConfig, RetrievedDocument, Role, Turn

logger = get_logger(__name__)


def build_system_prompt(system_instructions: str, documents: Sequence[RetrievedDocument]) -> str:
    """Append supporting documents to the system instructions as a numbered context block."""
    if not documents:
        return system_instructions

    parts = []
    for idx, doc in enumerate(documents):
        header = f"[{idx}]"
        if doc.metadata:
            meta = ", ".join(f"{k}: {v}" for k, v in doc.metadata.items())
            header += f" ({meta})"
        parts.append(f"{header}\n{doc.text}")

    return (
        f"{system_instructions}\n\n"
        "Use the following information to complete your task:\n\n"
        + "\n\n".join(parts)
    )


class LanguageModel:
    """Interface of a chat model provider."""

    name: str = "unknown"

    async def generate(
        self,
        history: Sequence[Turn],
        system_instructions: str,
        generation_config: GenerationConfig,
        documents: Sequence[RetrievedDocument],
    ) -> str:
        raise NotImplementedError


class OpenAIChatModel(LanguageModel):
    """Chat completions through the OpenAI API."""

    def __init__(self, client: AsyncOpenAI, model: str = "gpt-4o-mini"):
        self.client = client
        self.name = model

    def _build_messages(
        self,
        history: Sequence[Turn],
        system_instructions: str,
        documents: Sequence[RetrievedDocument],
    ) -> List[Dict[str, str]]:
        messages = [{"role": "system", "content": build_system_prompt(system_instructions, documents)}]
        for turn in history:
            messages.append({"role": turn.role.value, "content": turn.content})
        return messages

    async def generate(
        self,
        history: Sequence[Turn],
        system_instructions: str,
        generation_config: GenerationConfig,
        documents: Sequence[RetrievedDocument],
    ) -> str:
        request: Dict[str, Any] = {
            "model": self.name,
            "messages": self._build_messages(history, system_instructions, documents),
            "max_tokens": generation_config.max_output_tokens,
            "temperature": generation_config.temperature,
        }
        if generation_config.stop_sequences:
            request["stop"] = generation_config.stop_sequences

        start_time = time.time()
        try:
            response = await self.client.chat.completions.create(**request)
        except openai.OpenAIError as e:
            logger.error(f"OpenAI chat completion failed: {str(e)}", model=self.name, error_type=type(e).__name__)
            raise ModelInvocationError(f"Chat model {self.name} failed", str(e)) from e

        usage = getattr(response, "usage", None)
        logger.llm_call(
            model=self.name,
            prompt_tokens=getattr(usage, "prompt_tokens", None),
            response_tokens=getattr(usage, "completion_tokens", None),
            duration_ms=round((time.time() - start_time) * 1000, 2)
        )

        if not response.choices:
            raise ModelInvocationError(f"Chat model {self.name} returned no choices")
        return response.choices[0].message.content or ""


class GeminiChatModel(LanguageModel):
    """Chat generation through Google Gemini. genai must already be configured."""

    def __init__(self, model: str = "gemini-2.5-flash"):
        self.name = model

    def _build_contents(self, history: Sequence[Turn]) -> List[Dict[str, Any]]:
        contents = []
        for turn in history:
            role = "user" if turn.role == Role.USER else "model"
            contents.append({"role": role, "parts": [turn.content]})
        return contents

    async def generate(
        self,
        history: Sequence[Turn],
        system_instructions: str,
        generation_config: GenerationConfig,
        documents: Sequence[RetrievedDocument],
    ) -> str:
        model = genai.GenerativeModel(
            model_name=self.name,
            system_instruction=build_system_prompt(system_instructions, documents),
        )
        config = genai.GenerationConfig(
            max_output_tokens=generation_config.max_output_tokens,
            temperature=generation_config.temperature,
            stop_sequences=generation_config.stop_sequences or None,
        )

        start_time = time.time()
        try:
            response = await model.generate_content_async(
                self._build_contents(history),
                generation_config=config,
            )
        except Exception as e:
            logger.error(f"Gemini generation failed: {str(e)}", model=self.name, error_type=type(e).__name__)
            raise ModelInvocationError(f"Chat model {self.name} failed", str(e)) from e

        logger.llm_call(model=self.name, duration_ms=round((time.time() - start_time) * 1000, 2))

        # .text raises ValueError when the candidate was blocked or has no parts
        try:
            return response.text or ""
        except ValueError as e:
            raise ModelInvocationError(f"Chat model {self.name} returned no usable text", str(e)) from e
