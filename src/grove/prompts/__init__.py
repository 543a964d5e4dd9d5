"""System prompts shipped as markdown files with YAML frontmatter.

Each ``<name>.md`` in this directory has frontmatter metadata (name,
description, temperature) and a body holding the system prompt. The body
may reference ``$today``, substituted when the prompt is rendered.
"""

from dataclasses import dataclass
from datetime import date
from pathlib import Path
from string import Template

import frontmatter

PROMPTS_DIR = Path(__file__).parent


class PromptLoadError(Exception):
    """Raised when a prompt file cannot be found or parsed."""

    pass


@dataclass(frozen=True)
class PromptTemplate:
    """A system prompt and its metadata."""

    name: str
    description: str
    body: str
    temperature: float | None = None

    def render(self, today: date | None = None) -> str:
        """Fill in placeholders and return the system prompt."""
        today = today or date.today()
        return Template(self.body).safe_substitute(today=today.isoformat())


def load_prompt(name: str, prompts_dir: Path | None = None) -> PromptTemplate:
    """Load a prompt template by name.

    Args:
        name: File stem, e.g. 'extraction'.
        prompts_dir: Directory to read from, the bundled prompts if None.

    Raises:
        PromptLoadError: If the file is missing, unreadable or has no body.
    """
    path = (prompts_dir or PROMPTS_DIR) / f"{name}.md"
    if not path.is_file():
        raise PromptLoadError(f"Prompt file not found: {path}")

    try:
        post = frontmatter.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise PromptLoadError(f"Cannot read prompt file {path}: {e}") from e
    except Exception as e:
        raise PromptLoadError(f"Failed to parse frontmatter in {path}: {e}") from e

    body = post.content.strip()
    if not body:
        raise PromptLoadError(f"Prompt {name} has no body")

    temperature = post.metadata.get("temperature")
    if temperature is not None:
        try:
            temperature = float(temperature)
        except (TypeError, ValueError) as e:
            raise PromptLoadError(f"Invalid temperature in {path}: {temperature}") from e

    return PromptTemplate(
        name=str(post.metadata.get("name", name)),
        description=str(post.metadata.get("description", "")),
        body=body,
        temperature=temperature,
    )
