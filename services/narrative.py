"""
Curatorial explanations for recommended artworks.

Explanations come from an opaque, possibly slow text generator. Callers must
treat every generator as unreliable and fall back to default text.
"""

from __future__ import annotations

import logging
from typing import Any

from langchain_core.output_parsers import StrOutputParser
from langchain_core.prompts import ChatPromptTemplate
from langchain_openai import ChatOpenAI

from models.features import Context

logger = logging.getLogger(__name__)

DEFAULT_EXPLANATION = "Selected for strategic alignment with your collection goals."
FALLBACK_EXPLANATION = "Provides essential stylistic contrast for your current collection phase."

SYSTEM_PROMPT = """
You are ArtFlow Strategist, a curator advising art collectors.
Write exactly one brief curatorial sentence explaining why an artwork is a high-intent match.
Use terms like 'tactile resonance', 'chromatic weight' or 'formal rigor'.
Never mention scores, algorithms or recommendations. Output the sentence only.
"""

PROMPT_TEMPLATE = ChatPromptTemplate.from_messages(
    [
        ("system", SYSTEM_PROMPT),
        (
            "human",
            'Evaluate artwork: "{title}" by {artist} ({style}, {medium}).\n'
            "Context: {collection_context}\n"
            "Mode: {mode}."
        ),
    ]
)


def collection_context(context: Context) -> str:
    """One line describing what the collector is working towards."""
    roadmap = context.roadmap
    if roadmap and roadmap.target_styles:
        return (f"This piece aligns with your '{roadmap.title}' strategy targeting "
                f"{', '.join(roadmap.target_styles)}.")
    return "Selected based on your core stylistic interaction signals."


def narrative_mode(reason: str) -> str:
    return 'Aesthetic Drift' if reason == 'explore' else 'Strategic Fit'


class NarrativeGenerator:
    """Produces a one-sentence explanation for a recommended artwork."""

    async def explain(self, artwork: Any, context: Context, reason: str = 'exploit') -> str:
        raise NotImplementedError


class TemplateNarrativeGenerator(NarrativeGenerator):
    """Deterministic offline explanations built from artwork metadata."""

    async def explain(self, artwork: Any, context: Context, reason: str = 'exploit') -> str:
        style = getattr(artwork, 'style', '') or 'contemporary'
        medium = (getattr(artwork, 'primary_medium', '') or 'mixed').lower()
        title = getattr(artwork, 'title', '') or 'This work'

        if reason == 'explore':
            return (f"{title} offers an aesthetic drift into {style.lower()} {medium}, "
                    f"testing the chromatic weight of your collection.")

        preferred = {s.lower() for s in context.preferred_styles}
        if style.lower() in preferred:
            return f"{title} extends your {style} focus with the formal rigor of {medium}."
        if context.roadmap and context.roadmap.title:
            return f"{title} advances your '{context.roadmap.title}' roadmap through the tactile resonance of {medium}."
        return DEFAULT_EXPLANATION


class LLMNarrativeGenerator(NarrativeGenerator):
    """Explanations from a chat model via a LangChain prompt chain."""

    def __init__(self, model_name: str = "gpt-4o-mini", temperature: float = 0.7, llm=None):
        llm = llm or ChatOpenAI(model=model_name, temperature=temperature)
        self.chain = PROMPT_TEMPLATE | llm | StrOutputParser()

    async def explain(self, artwork: Any, context: Context, reason: str = 'exploit') -> str:
        response = await self.chain.ainvoke({
            "title": getattr(artwork, 'title', ''),
            "artist": getattr(artwork, 'artist_name', '') or getattr(artwork, 'artist_id', ''),
            "style": getattr(artwork, 'style', ''),
            "medium": getattr(artwork, 'primary_medium', ''),
            "collection_context": collection_context(context),
            "mode": narrative_mode(reason),
        })
        return (response or '').strip() or DEFAULT_EXPLANATION


__all__ = [
    "DEFAULT_EXPLANATION",
    "FALLBACK_EXPLANATION",
    "NarrativeGenerator",
    "TemplateNarrativeGenerator",
    "LLMNarrativeGenerator",
]
