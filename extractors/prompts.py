# extractors/prompts.py
from dataclasses import dataclass
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, StrictUndefined

# Resolve template directory relative to this file
TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"
env = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    undefined=StrictUndefined,
    keep_trailing_newline=False,
)


@dataclass(frozen=True)
class PromptTemplate:
    system_message: str
    template_name: str
    max_tokens: int = 1000
    temperature: float = 0.1
    image_detail: str = "low"

    def render(self, **variables) -> str:
        return env.get_template(self.template_name).render(**variables)


PRODUCT_EXTRACTION = PromptTemplate(
    system_message=(
        "You are an expert e-commerce data extraction AI. Your task is to analyze "
        "product pages and extract structured information with high accuracy."
    ),
    template_name="product_extraction.j2",
)
