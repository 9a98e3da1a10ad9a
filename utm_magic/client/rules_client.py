"""Fetches the content rules matching the visitor's attribution."""

import logging
from typing import Dict, List, Optional

import httpx
from pydantic import ValidationError

from ..schemas import ContentRule, RulesResponse

logger = logging.getLogger(__name__)


class RuleClient:
    def __init__(
        self,
        rules_url: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ):
        self.rules_url = rules_url
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def fetch(self, attribution: Dict[str, str], page_url: Optional[str] = None) -> List[ContentRule]:
        """
        Query the rule endpoint with the attribution fields as parameters.
        No attribution means no request; any failure yields no rules.
        """
        if not self.rules_url or not attribution:
            return []

        headers = {"Referer": page_url} if page_url else {}
        try:
            response = await self.client.get(self.rules_url, params=attribution, headers=headers)
            response.raise_for_status()
            rules = RulesResponse.model_validate(response.json()).rules
        except httpx.HTTPError as e:
            logger.warning(f"Failed to fetch content rules: {e}")
            return []
        except (ValueError, ValidationError) as e:
            logger.warning(f"Unreadable content rules response: {e}")
            return []

        logger.debug(f"Fetched {len(rules)} content rule(s) for {attribution}")
        return rules

    async def aclose(self) -> None:
        await self.client.aclose()
