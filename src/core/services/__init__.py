"""Service wiring for Pathway."""

from src.core.services.container import ServiceContainer

__all__ = ["ServiceContainer"]
