"""HTTP client utilities for talking to a running price service"""

import logging
from typing import Any

import requests

logger = logging.getLogger(__name__)


class HTTPClient:
    """Simple HTTP client wrapper"""

    def __init__(self, base_url: str, timeout: int = 30):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()

    def get(self, path: str, params: dict | None = None) -> dict[str, Any]:
        """Make GET request"""
        url = f"{self.base_url}{path}"
        response = self.session.get(url, params=params, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def get_prices(self) -> dict[str, Any]:
        return self.get("/prices")

    def health_check(self) -> bool:
        """Check service health"""
        try:
            response = self.session.get(f"{self.base_url}/health", timeout=5)
            return response.status_code == 200
        except requests.RequestException as e:
            logger.debug(f"Health check against {self.base_url} failed: {e}")
            return False
