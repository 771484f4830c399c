"""
Image generation through the Gemini image model.
"""

import base64
import logging
from typing import Dict

from google import genai
from google.genai import types

from ...config import config
from ...exceptions import ConfigurationError, UpstreamServiceError
from .prompts import load_prompts

logger = logging.getLogger(__name__)


def get_client() -> genai.Client:
    if not config.GEMINI_API_KEY:
        raise ConfigurationError('Google AI API key not configured. Set GEMINI_API_KEY.')
    return genai.Client(api_key=config.GEMINI_API_KEY)


def _map_error(e: Exception) -> UpstreamServiceError:
    message = str(e)
    if 'API key' in message:
        return UpstreamServiceError('Invalid Google AI API key. Please check your configuration.', status_code=401)
    if 'quota' in message or 'limit' in message:
        return UpstreamServiceError('API quota exceeded. Please try again later.', status_code=429)
    return UpstreamServiceError(message or 'Failed to generate image')


def generate_image(prompt: str) -> Dict[str, str]:
    """
    Generate a marketing image for the prompt.

    Returns:
        dict: {'image': 'data:<mime>;base64,<data>', 'description': str}
    """
    client = get_client()
    enhanced_prompt = load_prompts()['image_prompt_template'].format(prompt=prompt)

    try:
        response = client.models.generate_content(
            model=config.GEMINI_IMAGE_MODEL,
            contents=enhanced_prompt,
            config=types.GenerateContentConfig(response_modalities=['TEXT', 'IMAGE']),
        )
    except Exception as e:
        logger.error(f"Image generation failed: {e}")
        raise _map_error(e) from e

    image = None
    description = ''
    candidates = response.candidates or []
    parts = candidates[0].content.parts if candidates and candidates[0].content else None
    for part in parts or []:
        if part.inline_data and part.inline_data.data:
            data = part.inline_data.data
            if isinstance(data, bytes):
                data = base64.b64encode(data).decode('ascii')
            image = f"data:{part.inline_data.mime_type};base64,{data}"
        if part.text:
            description = part.text

    if not image:
        logger.warning("Gemini response contained no image part")
        raise UpstreamServiceError('Failed to generate image. Try a different prompt.', status_code=500)

    return {'image': image, 'description': description or 'Image generated successfully'}
