"""Restructures raw transcripts into markdown via a chat model."""

import time

import openai

from ..errors import classify
from ..logging_utils import get_logger
from .config import (
    DEFAULT_CHAT_MODEL,
    DEFAULT_POST_PROCESSING_MAX_TOKENS,
    DEFAULT_POST_PROCESSING_PROMPT,
    DEFAULT_POST_PROCESSING_TEMPERATURE,
)

logger = get_logger(__name__)


class PostProcessor:
    """Formats transcripts with a single chat completion."""

    def __init__(
        self,
        client: openai.AsyncOpenAI,
        temperature: float = DEFAULT_POST_PROCESSING_TEMPERATURE,
        max_tokens: int = DEFAULT_POST_PROCESSING_MAX_TOKENS,
    ) -> None:
        """
        Initialize the post-processor.

        Args:
            client: AsyncOpenAI client shared with the transcription client
            temperature: Sampling temperature
            max_tokens: Output length ceiling
        """
        self._client = client
        self.temperature = temperature
        self.max_tokens = max_tokens

    def build_messages(
        self, raw_text: str, prompt_override: str | None = None
    ) -> list[dict[str, str]]:
        system_prompt = (
            prompt_override
            if prompt_override and prompt_override.strip()
            else DEFAULT_POST_PROCESSING_PROMPT
        )
        return [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": raw_text},
        ]

    async def structure_text(
        self,
        raw_text: str,
        model: str = DEFAULT_CHAT_MODEL,
        prompt_override: str | None = None,
    ) -> str:
        """
        Restructure a raw transcript into markdown.

        Args:
            raw_text: Transcript to format
            model: Chat model identifier
            prompt_override: Custom system prompt replacing the default

        Returns:
            Formatted markdown, or ``raw_text`` if the model returned nothing

        Raises:
            VoiceMDError: Classified as a post-processing failure
        """
        start_time = time.time()
        try:
            response = await self._client.chat.completions.create(
                model=model,
                messages=self.build_messages(raw_text, prompt_override),
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except Exception as e:
            error = classify(e, post_processing=True)
            logger.error(f"❌ Post-processing failed: {error!r}", exc_info=e)
            raise error from e

        content = None
        if response.choices:
            content = response.choices[0].message.content

        if not content or not content.strip():
            logger.warning("⚠️ Chat model returned no content, keeping raw text")
            return raw_text

        logger.info(
            f"✅ Post-processing complete with {model}: "
            f"time={time.time() - start_time:.2f}s"
        )
        return content
