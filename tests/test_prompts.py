"""Tests for prompt templates."""

from datetime import date
from pathlib import Path

import pytest

from grove.prompts import PromptLoadError, PromptTemplate, load_prompt


class TestBundledPrompts:
    """Tests for the prompts shipped with grove."""

    @pytest.mark.parametrize("name", ["extraction", "image_extraction", "briefing"])
    def test_loads(self, name: str) -> None:
        """Every bundled prompt loads with metadata and a body."""
        prompt = load_prompt(name)
        assert prompt.name == name
        assert prompt.description
        assert prompt.body
        assert prompt.temperature is not None

    def test_extraction_mentions_wire_keys(self) -> None:
        """The extraction prompt asks for the camelCase keys."""
        body = load_prompt("extraction").body
        for key in ("contactName", "preferences", "familyMembers", "seedlings", "interactionSummary"):
            assert key in body

    def test_render_substitutes_today(self) -> None:
        """$today is replaced with an ISO date."""
        rendered = load_prompt("extraction").render(date(2024, 6, 15))
        assert "2024-06-15" in rendered
        assert "$today" not in rendered


class TestLoadPrompt:
    """Tests for load_prompt."""

    def test_missing_file(self, tmp_path: Path) -> None:
        """Missing prompts raise PromptLoadError."""
        with pytest.raises(PromptLoadError, match="not found"):
            load_prompt("nope", prompts_dir=tmp_path)

    def test_custom_dir(self, tmp_path: Path) -> None:
        """Prompts load from a custom directory."""
        (tmp_path / "custom.md").write_text(
            "---\nname: custom\ndescription: A test\ntemperature: 0.5\n---\nHello on $today\n"
        )
        prompt = load_prompt("custom", prompts_dir=tmp_path)
        assert prompt == PromptTemplate(
            name="custom", description="A test", body="Hello on $today", temperature=0.5
        )

    def test_no_frontmatter(self, tmp_path: Path) -> None:
        """A plain markdown file uses the file name and no temperature."""
        (tmp_path / "plain.md").write_text("Just a body")
        prompt = load_prompt("plain", prompts_dir=tmp_path)
        assert prompt.name == "plain"
        assert prompt.temperature is None

    def test_empty_body(self, tmp_path: Path) -> None:
        """A prompt without a body is rejected."""
        (tmp_path / "empty.md").write_text("---\nname: empty\n---\n")
        with pytest.raises(PromptLoadError, match="no body"):
            load_prompt("empty", prompts_dir=tmp_path)

    def test_invalid_temperature(self, tmp_path: Path) -> None:
        """A non-numeric temperature is rejected."""
        (tmp_path / "bad.md").write_text("---\ntemperature: warm\n---\nBody\n")
        with pytest.raises(PromptLoadError, match="temperature"):
            load_prompt("bad", prompts_dir=tmp_path)

    def test_other_placeholders_untouched(self) -> None:
        """Unknown $placeholders survive rendering."""
        template = PromptTemplate(name="t", description="", body="$today and $other")
        assert template.render(date(2024, 1, 2)) == "2024-01-02 and $other"
