from pingwatch.checks.models import Check
from pingwatch.checks.registry import CheckRegistry

__all__ = ["Check", "CheckRegistry"]
