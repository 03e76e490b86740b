"""Actions package - terminal output for provisioning runs and status checks."""

from proxy_forge.actions.report import ReportAction

__all__ = ["ReportAction"]
