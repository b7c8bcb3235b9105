"""
Sports-data provider clients.

This module provides a unified interface for fetching match results from
third-party sports-data APIs, normalized to MatchResult.

Usage:
    from sports_oracle.src.providers import get_provider, get_available_providers

    # Get list of available providers
    available = get_available_providers()
    # ['api_football', 'football_data', 'sportsdataio']

    # Create a provider instance
    provider = get_provider("football_data", api_key="your-api-key")
    matches = await provider.fetch_live_matches()
    result = await provider.fetch_match_result(matches[0].match_id)
"""

# Import base classes and utilities
from .base import (
    PROVIDER_REGISTRY,
    BaseProvider,
    MalformedProviderData,
    MatchNotFound,
    ProviderConfigError,
    ProviderError,
    ProviderHTTPError,
    ProviderUnavailable,
    get_available_providers,
    get_provider,
    register_provider,
)

# Import all provider implementations to trigger registration
from .api_football import ApiFootballProvider
from .football_data import FootballDataProvider
from .sportsdataio import SportsDataIOProvider

__all__ = [
    # Base classes
    "BaseProvider",
    "ProviderError",
    "ProviderConfigError",
    "ProviderHTTPError",
    "ProviderUnavailable",
    "MatchNotFound",
    "MalformedProviderData",
    # Registry functions
    "register_provider",
    "get_provider",
    "get_available_providers",
    "PROVIDER_REGISTRY",
    # Provider implementations
    "ApiFootballProvider",
    "FootballDataProvider",
    "SportsDataIOProvider",
]
