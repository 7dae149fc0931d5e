"""Tool registry, dispatcher and built-in runbook tools."""

from triage.tools.dispatcher import ToolDispatcher
from triage.tools.registry import ToolDescriptor, ToolRegistry
from triage.tools.runbooks import register_runbook_tools

__all__ = ["ToolDescriptor", "ToolDispatcher", "ToolRegistry", "register_runbook_tools"]
