"""Token relationship engine: per-pair visibility and cover states."""
