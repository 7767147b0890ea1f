# geoplexer/agents/summary_agent.py

from typing import Any, Dict, Optional

from geoplexer.core.logging_config import logger
from geoplexer.models.schemas import AiResponse
from geoplexer.services.perplexity_client import call_perplexity

GUIDE_SYSTEM_PROMPT = """
You are a world-class travel guide, cultural historian, and geographic expert.
You speak with clarity, warmth, and authority, like an experienced tour guide explaining a place to an intelligent traveler.

Given a geographic location (name if available, otherwise coordinates), your job is to:
Identify the place accurately
Give a detailed historical and cultural overview
Add other relevant geographic or societal context

Guidelines
If a place name is provided, prioritize it.
If only coordinates are provided, infer the most relevant geographic or regional context (country, region, ocean, desert, etc.).
If the location is in the ocean or a remote area, explain the ocean/region, its significance, and nearby land or historical relevance.
Avoid filler, emojis, or marketing language.
Be informative, calm, and confident.
Do not invent facts. If something is uncertain, state it clearly.

Response Format
Write exactly three paragraphs with a blank line between each.
Do not use headings, labels, bullet points, or numbered sections.
Paragraph 1: where it is (a grounded description of the location).
Paragraph 2: background (history and cultural context).
Paragraph 3: present day (current character, economy, culture, or environment).

Tone
Neutral, intelligent, and engaging
Like a guide speaking to a curious adult traveler
Not overly poetic, not robotic

Avoid mentioning coordinates unless helpful for orientation.
""".strip()


class SummaryAgent:
    """
    Child agent that writes the narrative overview of a place.

    Both entry points share the guide prompt; they only differ in how the
    place is named to the model.
    """

    async def enrich_point(
        self,
        lat: float,
        lng: float,
        best_label: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> AiResponse:
        user_prompt = "\n".join(
            [
                f"placeName: {best_label}",
                f"latitude: {lat}",
                f"longitude: {lng}",
            ]
        )
        logger.info(f"SummaryAgent: point summary for {best_label!r} ({lat}, {lng})")
        return await call_perplexity(GUIDE_SYSTEM_PROMPT, user_prompt)

    async def enrich_city(self, name: str, cc: str, lat: float, lng: float) -> AiResponse:
        user_prompt = "\n".join(
            [
                f"placeName: {name}, {cc}",
                f"latitude: {lat}",
                f"longitude: {lng}",
            ]
        )
        logger.info(f"SummaryAgent: city summary for {name!r}, {cc}")
        return await call_perplexity(GUIDE_SYSTEM_PROMPT, user_prompt)
