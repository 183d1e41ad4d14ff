"""Conductor: agent block execution core for workflow engines.

Turns a declarative agent node into one provider call enriched with
tools, long-term memory and structured-output guarantees.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
