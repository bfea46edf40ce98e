"""Challenge tracking core: task generation, progress and the HTTP API around them."""
