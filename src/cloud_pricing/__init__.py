"""
Cloud Price Aggregator

Aggregates on-demand compute pricing from AWS, Azure, and GCP into a single
normalized, cached price list served over HTTP.
"""

__version__ = "1.0.0"
__author__ = "Cloud Pricing Team"
