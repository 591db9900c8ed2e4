import json
import logging
import re

import openai
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from service_errors import ServiceError, ServiceUnavailable

logger = logging.getLogger(__name__)

HEX_COLOR = re.compile(r'^#?([0-9a-fA-F]{6})$')
MIN_COLORS = 2
MAX_COLORS = 10


def normalize_color(value):
    """'#aabbcc', 'AABBCC' -> '#AABBCC'; None if not a hex color"""
    match = HEX_COLOR.match(str(value).strip())
    if not match:
        return None
    return f'#{match.group(1).upper()}'


class PaletteService:
    """Generates color palettes from a text description with a chat model"""

    def __init__(self, api_key=None, base_url='https://api.openai.com/v1',
                 model='gpt-4o', timeout=30, max_retries=2):
        self.api_key = api_key
        self.base_url = base_url
        self.model = model
        self.timeout = timeout
        self.max_retries = max_retries

    @property
    def enabled(self):
        return bool(self.api_key)

    def get_llm(self):
        logger.debug("Using OpenAI-compatible model %s at %s", self.model, self.base_url)
        return ChatOpenAI(
            model=self.model,
            api_key=self.api_key,
            base_url=self.base_url,
            timeout=self.timeout,
            max_retries=self.max_retries
        )

    def _messages(self, description, mood, num_colors):
        return [
            SystemMessage(content='You are a color palette designer.'),
            HumanMessage(content=(
                f"Create a color palette of exactly {num_colors} colors for: {description}. "
                f"The mood is {mood}. "
                'Respond with JSON of the form {"colors": ["#RRGGBB", ...]}.'
            ))
        ]

    def generate_palette(self, description, mood, num_colors=5):
        if not self.enabled:
            raise ServiceUnavailable('Palette generation is not configured')

        num_colors = max(MIN_COLORS, min(MAX_COLORS, int(num_colors or 5)))
        try:
            response = self.get_llm().invoke(
                self._messages(description, mood, num_colors),
                response_format={'type': 'json_object'}
            )
            colors = json.loads(response.content)['colors']
        except (openai.OpenAIError, KeyError, TypeError, ValueError) as e:
            logger.warning("Palette generation failed: %s", e)
            raise ServiceError('Error generating color palette') from e

        palette = []
        if isinstance(colors, list):
            palette = [c for c in (normalize_color(value) for value in colors) if c]
        if not palette:
            raise ServiceError('Error generating color palette')
        return palette[:num_colors]
