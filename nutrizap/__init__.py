"""Weight-loss quiz funnel with a weight projection calculator."""
