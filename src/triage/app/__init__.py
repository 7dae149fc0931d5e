"""Application runtime."""

from triage.app.runtime import AppRuntime

__all__ = ["AppRuntime"]
