from .runtime_context import RuntimeContext
from .verifier import verify

__all__ = [
  "RuntimeContext",
  "verify",
]
