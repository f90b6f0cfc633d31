#!/usr/bin/env python3
"""Health check script for the price service"""

import argparse
import os
import sys
from typing import Any

import requests

DEFAULT_URL = os.getenv("PRICE_SERVICE_URL", "http://localhost:5000")


def check_price_service(base_url: str) -> dict[str, Any]:
    """Health check for the price service"""
    try:
        response = requests.get(f"{base_url}/health", timeout=5)
        if response.status_code != 200:
            return {"status": "unhealthy", "reason": f"API returned {response.status_code}"}

        prices = requests.get(f"{base_url}/prices", timeout=10)
        if prices.status_code != 200:
            return {"status": "unhealthy", "reason": f"Prices returned {prices.status_code}"}

        data = prices.json()
        empty = [provider for provider in ("aws", "azure", "gcp") if not data.get(provider)]
        if empty:
            return {"status": "degraded", "reason": f"No prices for {', '.join(empty)}"}

        updated = data.get("lastUpdated")
        return {"status": "healthy", "reason": f"All checks passed, last updated {updated}"}

    except requests.exceptions.RequestException as e:
        return {"status": "unhealthy", "reason": f"Request failed: {e}"}
    except ValueError as e:
        return {"status": "unhealthy", "reason": f"Invalid response: {e}"}


def main():
    parser = argparse.ArgumentParser(description="Health check for the price service")
    parser.add_argument("--url", default=DEFAULT_URL, help="Price service base URL")

    args = parser.parse_args()
    result = check_price_service(args.url.rstrip("/"))

    print(f"Health check result: {result}")

    if result["status"] == "healthy":
        sys.exit(0)
    elif result["status"] == "degraded":
        print(f"Service degraded: {result['reason']}")
        sys.exit(0)  # Still return OK for degraded state
    else:
        print(f"Service unhealthy: {result['reason']}")
        sys.exit(1)


if __name__ == "__main__":
    main()
