"""Leveraged-position vault engine: share accounting, rebalancing and flash-loan periphery."""

__version__ = "0.1.0"
