"""Agent block execution."""

from conductor.agent.handler import AgentBlockHandler

__all__ = ["AgentBlockHandler"]
