"""Configuration for the price aggregation service."""

from .settings import PricingConfig, get_config
