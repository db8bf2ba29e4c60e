"""Build orchestrator protocol and the in-process reference builder."""

from .base import Builder, BuilderFactory, BuildStatus
from .inprocess import InProcessBuilder, create_builder

__all__ = ["BuildStatus", "Builder", "BuilderFactory", "InProcessBuilder", "create_builder"]
