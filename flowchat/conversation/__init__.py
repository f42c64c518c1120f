"""Conversation state: message log, persistence and session identity."""
