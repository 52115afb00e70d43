"""
Core module for application configuration and the assessment engines.

Note: the engines are not imported at package level to avoid circular imports
with app.models. Import them directly: from app.core.attempt_engine import ...
"""
from .config import settings

__all__ = ["settings"]
