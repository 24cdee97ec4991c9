"""Application services wiring extraction, cache and reviewer together."""
