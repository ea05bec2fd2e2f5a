"""dbagent - a tool-calling AI agent for MongoDB collections."""

__version__ = "0.1.0"
