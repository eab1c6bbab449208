"""Oracle adapters."""

from .interfaces import ModelResolver, Oracle
from .oracle import ChatModelOracle

__all__ = ["ChatModelOracle", "ModelResolver", "Oracle"]
