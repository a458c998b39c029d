"""Core domain modules.

- oracle: opinion-source fan-out, pick extraction, reviewer client,
  consensus ranking and prediction tracking
"""
