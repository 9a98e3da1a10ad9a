"""Attribution Store: first-touch and last-touch campaign parameters."""

import logging
from typing import Dict, Mapping, Optional
from urllib.parse import parse_qsl, urlsplit

from ..schemas import ATTRIBUTION_FIELDS, extract_attribution
from .storage import KeyValueStore, SafeStore

logger = logging.getLogger(__name__)


def parse_attribution(url: str) -> Dict[str, str]:
    """Pull the non-empty campaign parameters out of a URL or query string."""
    query = urlsplit(url).query if "?" in url or "://" in url else url.lstrip("?")
    params = dict(parse_qsl(query, keep_blank_values=True))
    return extract_attribution(params)


class AttributionStore:
    """
    Keeps two snapshots in persistent storage. First-touch fields are
    written once and never change; last-touch fields follow the most recent
    non-empty value.
    """

    def __init__(self, persistent: Optional[KeyValueStore], prefix: str = "utm_cm_"):
        self.storage = SafeStore(persistent, scope="persistent storage")
        self.first_prefix = f"{prefix}first_"
        self.last_prefix = f"{prefix}last_"

    def record_incoming(self, params: Mapping[str, Optional[str]]) -> None:
        """Store each non-empty incoming field; absent fields clear nothing."""
        for field, value in extract_attribution(dict(params)).items():
            self.storage.set(self.last_prefix + field, value)
            if not self.storage.get(self.first_prefix + field):
                self.storage.set(self.first_prefix + field, value)
                logger.debug(f"Recorded first-touch {field}={value}")

    def first_touch(self) -> Dict[str, str]:
        return self._snapshot(self.first_prefix)

    def last_touch(self) -> Dict[str, str]:
        return self._snapshot(self.last_prefix)

    def current(self, url_params: Optional[Mapping[str, Optional[str]]] = None) -> Dict[str, str]:
        """Last-touch values overlaid with whatever the current URL carries."""
        merged = self.last_touch()
        if url_params:
            merged.update(extract_attribution(dict(url_params)))
        return merged

    def _snapshot(self, prefix: str) -> Dict[str, str]:
        snapshot = {}
        for field in ATTRIBUTION_FIELDS:
            value = self.storage.get(prefix + field)
            if value:
                snapshot[field] = value
        return snapshot
