"""Terminal output for mimikry runs."""

from mimikry.monitor.renderer import MonitorRenderer

__all__ = ["MonitorRenderer"]
