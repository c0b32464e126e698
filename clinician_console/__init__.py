"""Session and data orchestration for the clinician booking console."""
from clinician_console.console import ConsoleContext, create_console
from clinician_console.dashboard import DashboardView
from clinician_console.settings import SettingsView

__all__ = ["ConsoleContext", "DashboardView", "SettingsView", "create_console"]
