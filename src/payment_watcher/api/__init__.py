"""HTTP API — accepts watch requests and serves health/metrics."""
