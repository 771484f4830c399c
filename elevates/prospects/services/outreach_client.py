"""
Client for the external outreach system's prospect API.
"""

import logging
from typing import Any, Dict, List

import requests

from ...config import config
from ...exceptions import UpstreamServiceError

logger = logging.getLogger(__name__)


def fetch_outreach_prospects() -> List[Dict[str, Any]]:
    """
    Fetch all prospects from the outreach system.

    Raises:
        UpstreamServiceError: the system is unreachable, answers non-2xx,
            or does not return a JSON list
    """
    url = config.OUTREACH_API_URL
    logger.info(f"Fetching prospects from outreach system at {url}")

    try:
        response = requests.get(url, headers={'Accept': 'application/json'}, timeout=config.OUTREACH_TIMEOUT)
    except requests.RequestException as e:
        logger.error(f"Outreach system unreachable: {e}")
        raise UpstreamServiceError('Failed to fetch from Outreach System') from e

    if not response.ok:
        logger.error(f"Outreach system returned {response.status_code}")
        raise UpstreamServiceError('Failed to fetch from Outreach System')

    try:
        data = response.json()
    except ValueError as e:
        raise UpstreamServiceError('Outreach System returned invalid JSON') from e

    if isinstance(data, dict):
        data = data.get('prospects')
    if not isinstance(data, list):
        raise UpstreamServiceError('Outreach System returned an unexpected payload')

    logger.info(f"Fetched {len(data)} prospects from outreach system")
    return data
