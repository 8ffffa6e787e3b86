# extractors/vision.py
import base64

import openai
from openai import OpenAI

from core.config import OpenAISettings
from core.errors import NetworkError, ParseError, Unconfigured
from core.logger import get_logger

from .prompts import PromptTemplate

logger = get_logger(__name__)


class OpenAIDescriber:
    """Asks an OpenAI vision model to describe a page screenshot."""

    def __init__(self, settings: OpenAISettings, client: OpenAI | None = None):
        self.settings = settings
        self.client = client
        if self.client is None and settings.configured:
            self.client = OpenAI(
                api_key=settings.api_key,
                timeout=settings.timeout,
                max_retries=settings.max_retries,
            )
            logger.debug("OpenAI client initialized (model=%s).", settings.model)
        elif self.client is None:
            logger.warning("OPENAI_API_KEY not configured; AI extraction disabled.")

    def is_configured(self) -> bool:
        return self.client is not None

    def describe(self, image: bytes, prompt: str, template: PromptTemplate) -> str:
        if self.client is None:
            raise Unconfigured("OpenAI API key not configured")

        logger.debug(
            "Analyzing image with %s (image=%d bytes, prompt=%d chars).",
            self.settings.model, len(image), len(prompt),
        )
        encoded = base64.b64encode(image).decode("ascii")

        try:
            completion = self.client.chat.completions.create(
                model=self.settings.model,
                messages=[
                    {"role": "system", "content": template.system_message},
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": prompt},
                            {
                                "type": "image_url",
                                "image_url": {
                                    "url": f"data:image/png;base64,{encoded}",
                                    "detail": template.image_detail,
                                },
                            },
                        ],
                    },
                ],
                max_tokens=template.max_tokens,
                temperature=template.temperature,
            )
        except openai.OpenAIError as exc:
            raise NetworkError(f"AI analysis failed: {exc}") from exc

        content = completion.choices[0].message.content if completion.choices else None
        if not content:
            raise ParseError("No response content from OpenAI")

        logger.debug("AI analysis completed (%d chars).", len(content))
        return content
