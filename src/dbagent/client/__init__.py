"""Interactive clients for the agent API."""
