"""Contact fact extraction from notes and images using an LLM."""

import json
import logging
from datetime import date
from typing import Any

from ..errors import CollaboratorError, ValidationError
from ..llm_client import ImageData, LLMClient
from ..prompts import PromptTemplate, load_prompt
from .models import Extraction

logger = logging.getLogger(__name__)


def strip_code_fence(content: str) -> str:
    """Remove a markdown code block wrapped around a JSON response."""
    text = content.strip()
    if not text.startswith("```"):
        return text

    lines = [line for line in text.split("\n") if not line.strip().startswith("```")]
    return "\n".join(lines)


def parse_json_object(content: str) -> dict[str, Any]:
    """Parse a model response that should hold a single JSON object.

    Raises:
        CollaboratorError: If the response is not a JSON object.
    """
    try:
        data = json.loads(strip_code_fence(content))
    except json.JSONDecodeError as e:
        raise CollaboratorError(f"Model returned invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise CollaboratorError("Model response is not a JSON object")
    return data


class ContactExtractor:
    """Extracts structured contact facts using an LLM.

    Failures are never swallowed or retried: any error from the model call
    or an unparseable response is raised as CollaboratorError.
    """

    def __init__(
        self,
        text_llm: LLMClient,
        image_llm: LLMClient | None = None,
        text_prompt: PromptTemplate | None = None,
        image_prompt: PromptTemplate | None = None,
    ) -> None:
        """Initialize the extractor.

        Args:
            text_llm: LLM used for text notes.
            image_llm: Vision-capable LLM for images, text_llm if None.
            text_prompt: System prompt for notes, bundled 'extraction' if None.
            image_prompt: System prompt for images, bundled 'image_extraction' if None.
        """
        self.text_llm = text_llm
        self.image_llm = image_llm or text_llm
        self.text_prompt = text_prompt or load_prompt("extraction")
        self.image_prompt = image_prompt or load_prompt("image_extraction")

    async def extract(self, raw_input: str, today: date | None = None) -> Extraction:
        """Extract facts from a note or voice transcript.

        Args:
            raw_input: The note text.
            today: Date used to resolve relative dates, today if None.

        Returns:
            The extraction as returned by the model, not yet normalized.

        Raises:
            ValidationError: If raw_input is empty.
            CollaboratorError: If the model call fails or returns garbage.
        """
        if not raw_input or not raw_input.strip():
            raise ValidationError("rawInput is required")

        prompt = f"Extract information from this note:\n\n{raw_input.strip()}"
        return await self._run(self.text_llm, self.text_prompt, prompt, today=today)

    async def extract_from_image(
        self,
        image: ImageData,
        context: str | None = None,
        today: date | None = None,
    ) -> Extraction:
        """Extract facts from a photo or screenshot.

        Args:
            image: The image to analyze.
            context: Optional text from the user about the image.
            today: Date used to resolve relative dates, today if None.

        Raises:
            CollaboratorError: If the model call fails or returns garbage.
        """
        if context and context.strip():
            prompt = f"Additional context from user: {context.strip()}"
        else:
            prompt = "Analyze this image and extract relationship information."
        return await self._run(self.image_llm, self.image_prompt, prompt, image=image, today=today)

    async def _run(
        self,
        llm: LLMClient,
        template: PromptTemplate,
        prompt: str,
        image: ImageData | None = None,
        today: date | None = None,
    ) -> Extraction:
        try:
            content = await llm.complete(
                prompt,
                system=template.render(today),
                image=image,
                json_mode=True,
            )
        except Exception as e:
            logger.warning("Extraction call failed: %s", e)
            raise CollaboratorError(f"Extraction failed: {e}") from e

        data = parse_json_object(content)
        try:
            return Extraction.from_dict(data)
        except (TypeError, ValueError) as e:
            raise CollaboratorError(f"Unexpected extraction shape: {e}") from e
