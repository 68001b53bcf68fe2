from __future__ import annotations

from typing import Any

import httpx

from lorekeeper.domain.services.story_catalog import StoryCatalog
from lorekeeper.infrastructure.catalog_loader import parse_catalog
from lorekeeper.infrastructure.resilient_http import HttpPolicy, get_json_with_retry


class RemoteCatalogClient:
    """Fetches the story catalog document from an HTTP endpoint."""

    def __init__(
        self,
        url: str,
        policy: HttpPolicy | None = None,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._policy = policy or HttpPolicy.from_env()
        parsed = httpx.URL(url)
        self._path = parsed.raw_path.decode("ascii") or "/"
        base_url = f"{parsed.scheme}://{parsed.netloc.decode('ascii')}"
        self.client = http_client or httpx.Client(base_url=base_url, timeout=self._policy.timeout_seconds)

    def fetch_payload(self) -> dict[str, Any]:
        return get_json_with_retry(self.client, self._path, policy=self._policy)

    def fetch_catalog(self) -> StoryCatalog:
        return parse_catalog(self.fetch_payload())

    def close(self) -> None:
        self.client.close()
