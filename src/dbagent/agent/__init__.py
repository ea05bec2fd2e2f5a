"""Orchestration: model clients, tool execution and the turn state machine."""
