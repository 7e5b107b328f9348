"""
Image Creative Agent

Extracts visual themes from an article, turns each into an image prompt
and generates the images through the Gemini image endpoint.

Image generation is sequential and per-theme: a failed image is reported
as {"theme", "error"} and never stops the rest.
"""

import logging
from typing import Any, Dict, List, Optional, Union

import httpx

from src.analyzer.client import GeminiError
from src.utils.config import get_settings

from .base import BaseAgent
from .prompts import IMAGE_THEMES_SYSTEM, image_themes_prompt, image_generation_prompt

logger = logging.getLogger(__name__)

DEFAULT_ASPECT_RATIO = "4:3"


class ImageCreativeAgent(BaseAgent):
    """
    Image Creative - visual themes and article images.

    Usage:
        artist = ImageCreativeAgent(gemini)
        themes = await artist.extract_visual_themes(content)
        prompts = artist.build_image_prompts(themes["themes"], keyword="coffee grinder")
        images = await artist.generate_images(prompts)
    """

    @property
    def name(self) -> str:
        return "image_creative"

    @property
    def display_name(self) -> str:
        return "Image Creative"

    async def extract_visual_themes(
        self,
        content: Union[Dict[str, Any], str],
        count: str = "4-6",
    ) -> Dict[str, Any]:
        if isinstance(content, str):
            body, title = content, ""
        else:
            body = content.get("content") or content.get("article_body") or ""
            title = content.get("title") or (content.get("seo_meta") or {}).get("title") or ""

        self.progress("Extracting visual themes...")
        parsed, _ = await self.generate_json(
            image_themes_prompt(title, body, count),
            system_instruction=IMAGE_THEMES_SYSTEM,
            retry_label="Visual theme extraction",
        )
        if not isinstance(parsed, dict):
            return {"visual_strategy": "Professional, modern, SEO-friendly", "themes": []}

        parsed.setdefault("visual_strategy", "Professional, modern, SEO-friendly")
        themes = parsed.get("themes")
        parsed["themes"] = [t for t in themes if isinstance(t, dict)] if isinstance(themes, list) else []
        return parsed

    def build_image_prompts(
        self,
        themes: List[Dict[str, Any]],
        keyword: Optional[str] = None,
        article_title: Optional[str] = None,
        visual_style: Optional[str] = None,
    ) -> List[Dict[str, str]]:
        prompts = []
        for theme in themes:
            title = theme.get("title") or theme.get("id") or "Theme"
            description = theme.get("visual_metaphor") or theme.get("description") or ""
            prompts.append({
                "theme": title,
                "description": description,
                "prompt": image_generation_prompt(title, description, keyword, article_title, visual_style),
            })
        return prompts

    async def generate_image(self, prompt: str, aspect_ratio: str = DEFAULT_ASPECT_RATIO) -> str:
        """
        Generate one image and return its URL.

        Raises:
            GeminiError: Key missing, upstream failure or no URL returned
        """
        return await self.client.generate_image(prompt, get_settings().GEMINI_IMAGE_MODEL, aspect_ratio)

    async def generate_images(
        self,
        prompts: List[Dict[str, str]],
        aspect_ratio: str = DEFAULT_ASPECT_RATIO,
    ) -> List[Dict[str, Any]]:
        results = []
        for item in prompts:
            try:
                url = await self.generate_image(item["prompt"], aspect_ratio)
                results.append({"theme": item["theme"], "imageUrl": url})
            except (GeminiError, httpx.HTTPError) as e:
                logger.error(f"[{self.name}] Failed to generate image for theme '{item['theme']}': {e}")
                results.append({"theme": item["theme"], "error": str(e)})
        return results
