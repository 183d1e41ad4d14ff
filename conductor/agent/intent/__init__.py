"""RUN/SKIP intent gate."""

from conductor.agent.intent.gate import IntentGate
from conductor.agent.intent.result import Err, Ok, attempt

__all__ = ["IntentGate", "Ok", "Err", "attempt"]
