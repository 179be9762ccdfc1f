"""Prompt templates for AI study notes."""

from __future__ import annotations

from typing import Dict

PROMPT_REGISTRY_VERSION = "2026-10-01"

NOTES_LANGUAGES = ("Hindi", "English")

PROMPT_STUDY_NOTES = """You are an expert educator who writes high-quality, well-structured study notes for competitive exam students.
Write detailed notes on the topic below, long enough to fill about {page_count} pages.

Instructions:
1. Cover the topic in depth: sub-topics, historical context, key figures, important dates, causes, consequences and significance.
2. Structure the notes in Markdown with headings, subheadings, bold text, bulleted and numbered lists.
3. Where a visual aid would help, insert a placeholder in the format [[IMAGE: a descriptive prompt for an image generator]].
   Image prompts must describe safe, artistic and symbolic images. Never describe violence, combat or gore; prefer a flag, a map or a portrait.
4. Make the most important keywords, definitions, dates and concepts **bold**.
5. Use simple language and break complex ideas into easy points.
6. Write the notes strictly in this language: {language}.

Topic: {topic}
{context_block}
Generate the notes now."""

PROMPT_CONTEXT_BLOCK = "Additional context: {description}\n"


def build_notes_prompt(topic: str, language: str, description: str = "", page_count: int = 5) -> str:
    context_block = PROMPT_CONTEXT_BLOCK.format(description=description) if description else ""
    return PROMPT_STUDY_NOTES.format(
        topic=topic,
        language=language,
        context_block=context_block,
        page_count=page_count,
    )


def prompt_inventory() -> Dict[str, str]:
    return {
        "version": PROMPT_REGISTRY_VERSION,
        "study_notes": PROMPT_STUDY_NOTES,
    }
