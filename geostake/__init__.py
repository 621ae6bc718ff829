"""Registry of location-staked unique assets."""
