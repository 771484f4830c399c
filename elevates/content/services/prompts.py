"""
Loads the prompt and tool definitions shipped in content/prompts.yaml.
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict

import yaml

logger = logging.getLogger(__name__)

PROMPTS_PATH = Path(__file__).resolve().parent.parent / 'prompts.yaml'


@lru_cache(maxsize=1)
def load_prompts() -> Dict[str, Any]:
    with open(PROMPTS_PATH, 'r', encoding='utf-8') as f:
        prompts = yaml.safe_load(f) or {}
    logger.debug(f"Loaded {len(prompts.get('tools', []))} chat tools from {PROMPTS_PATH}")
    return prompts
