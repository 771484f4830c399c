"""
Anthropic Service

Chat assistant with calendar / task tools, and social post generation.
Tool calls are not executed here; they are returned as actions for the
dashboard to apply.
"""

import logging
from typing import Any, Dict, List, Optional

import anthropic

from ...config import config
from ...exceptions import ConfigurationError, UpstreamServiceError
from ...utils.timezone_utils import now_in_timezone
from .prompts import load_prompts

logger = logging.getLogger(__name__)


def get_client() -> anthropic.Anthropic:
    if not config.ANTHROPIC_API_KEY:
        raise ConfigurationError('ANTHROPIC_API_KEY not configured')
    return anthropic.Anthropic(api_key=config.ANTHROPIC_API_KEY)


def _create_message(**kwargs):
    client = get_client()
    try:
        return client.messages.create(
            model=config.ANTHROPIC_MODEL,
            max_tokens=config.ANTHROPIC_MAX_TOKENS,
            **kwargs,
        )
    except anthropic.APIStatusError as e:
        logger.error(f"Anthropic API error {e.status_code}: {e.message}")
        raise UpstreamServiceError(f"API Error: {e.message}", status_code=e.status_code) from e
    except anthropic.APIConnectionError as e:
        logger.error(f"Anthropic API unreachable: {e}")
        raise UpstreamServiceError('Anthropic API is unreachable') from e


def build_system_prompt(system_prompt: Optional[str] = None) -> str:
    """Caller's system prompt followed by today's date context"""
    prompts = load_prompts()
    today = now_in_timezone(config.DISPLAY_TIMEZONE)
    date_context = prompts['chat_date_context'].format(
        day_of_week=today.strftime('%A'),
        today=today.strftime('%Y-%m-%d'),
    )
    return f"{system_prompt or prompts['default_system_prompt']}\n\n{date_context}"


def chat(message: str, system_prompt: Optional[str] = None,
         history: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    """
    Send one chat turn.

    Args:
        message: The user's message
        system_prompt: Optional persona / instructions
        history: Prior turns as [{'role': 'user'|'assistant', 'content': str}]

    Returns:
        dict: {'content': str} plus 'actions': [{'type': tool name, 'data': tool input}]
              when the model asked to add an event or task
    """
    messages = [
        {'role': turn['role'], 'content': turn['content']}
        for turn in history or []
        if isinstance(turn, dict) and turn.get('role') in ('user', 'assistant') and turn.get('content')
    ]
    messages.append({'role': 'user', 'content': message})

    response = _create_message(
        system=build_system_prompt(system_prompt),
        tools=load_prompts()['tools'],
        messages=messages,
    )

    content = ''
    actions = []
    for block in response.content:
        if block.type == 'tool_use':
            actions.append({'type': block.name, 'data': block.input})
        elif block.type == 'text':
            content = block.text

    logger.info(f"Chat response with {len(actions)} actions (stop_reason={response.stop_reason})")

    result = {'content': content}
    if actions:
        result['actions'] = actions
    return result


def generate_post(prompt: str, platform: str = 'linkedin', tone_prompt: Optional[str] = None) -> str:
    """Generate a LinkedIn or Instagram post; anything but 'linkedin' is treated as Instagram"""
    prompts = load_prompts()
    platform_instructions = prompts['platforms'].get(platform, prompts['platforms']['instagram'])

    response = _create_message(
        system=tone_prompt or prompts['default_tone_prompt'],
        messages=[{'role': 'user', 'content': f"{platform_instructions}\n\nTopic/Request: {prompt}"}],
    )

    return '\n'.join(block.text for block in response.content if block.type == 'text')
