"""Cloud pricing integrations for AWS, Azure, and GCP."""

# Make key classes available at package level
from .base import (
    APIError,
    CloudProviderError,
    ConfigurationError,
    Generation,
    InstanceCategory,
    ParseError,
    PriceRecord,
    PricingProvider,
    ProviderFactory,
    ProviderName,
)

# Import provider implementations to register them with ProviderFactory
from . import aws
from . import azure
from . import gcp
