"""
AI Content Routes

Chat assistant, social post generation and image generation.
"""

import logging

from flask import Blueprint, jsonify

from ...auth import enforce_session
from ...exceptions import ValidationError
from ...utils.http_utils import error_response, get_json_body
from ..services import anthropic_service, image_service

logger = logging.getLogger(__name__)

# Create Blueprint for content routes
content_bp = Blueprint('content', __name__, url_prefix='/api')
content_bp.before_request(enforce_session)


@content_bp.route('/chat', methods=['POST'])
def chat():
    """One chat turn; tool calls come back as actions"""
    try:
        data = get_json_body()
        message = data.get('message')
        if not message:
            raise ValidationError('Message is required')

        history = data.get('history')
        result = anthropic_service.chat(
            message,
            system_prompt=data.get('systemPrompt'),
            history=history if isinstance(history, list) else None,
        )
        return jsonify(result)
    except Exception as e:
        return error_response(e, 'generating response')


@content_bp.route('/generate-post', methods=['POST'])
def generate_post():
    try:
        data = get_json_body()
        prompt = data.get('prompt')
        if not prompt:
            raise ValidationError('Prompt is required')

        content = anthropic_service.generate_post(
            prompt,
            platform=data.get('platform') or 'linkedin',
            tone_prompt=data.get('tonePrompt'),
        )
        return jsonify({'content': content})
    except Exception as e:
        return error_response(e, 'generating post')


@content_bp.route('/generate-image', methods=['POST'])
def generate_image():
    try:
        prompt = get_json_body().get('prompt')
        if not prompt:
            raise ValidationError('Prompt is required')
        return jsonify(image_service.generate_image(prompt))
    except Exception as e:
        return error_response(e, 'generating image')
