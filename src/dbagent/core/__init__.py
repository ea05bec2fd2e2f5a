"""Data contracts shared by the orchestrator, the tools and the model clients."""
