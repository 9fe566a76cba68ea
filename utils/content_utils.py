import logging

from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

DEFAULT_GATEWAY_URL = "https://gateway.pinata.cloud/ipfs/"
IPFS_SCHEME = "ipfs://"
CONTENT_SERVICE_TYPE = "content"


class ContentResolutionError(Exception):
    pass


def resolve_content(
    locator: Optional[str], gateway_url: str = DEFAULT_GATEWAY_URL
) -> Optional[str]:
    if not locator:
        return None
    # Inline data and plain http(s) locators are already fetchable
    if locator.startswith("data:") or locator.startswith("http"):
        return locator
    if locator.startswith(IPFS_SCHEME):
        content_id = locator.removeprefix(IPFS_SCHEME)
        return gateway_url.rstrip("/") + "/" + content_id
    return locator


class ContentResolver:
    def __init__(
        self,
        gateway_url: str = DEFAULT_GATEWAY_URL,
        timeout_in_secs: float = 10.0,
        max_retries: int = 2,
        backoff_factor: float = 0.5,
    ):
        self.gateway_url = gateway_url
        self.timeout_in_secs = timeout_in_secs
        self.session = requests.Session()

        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=backoff_factor,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["GET"],
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    def resolve(self, locator: Optional[str]) -> Optional[str]:
        return resolve_content(locator, self.gateway_url)

    def fetch_document(self, uri: str) -> dict:
        try:
            response = self.session.get(uri, timeout=self.timeout_in_secs)
            response.raise_for_status()
            document = response.json()
        except (requests.RequestException, ValueError) as e:
            logging.debug(
                "[Content] Failed to fetch document",
                extra={
                    "uri": uri,
                    "error": str(e),
                    "service_type": CONTENT_SERVICE_TYPE,
                },
            )
            raise ContentResolutionError(f"Failed to fetch document at {uri}") from e

        if not isinstance(document, dict):
            raise ContentResolutionError(f"Document at {uri} is not a JSON object")
        return document
