"""HTTP API for aggregated cloud prices."""
