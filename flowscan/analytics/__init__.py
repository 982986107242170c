"""Market-level analytics: money flow, technicals, sector rotation and macro regime."""
