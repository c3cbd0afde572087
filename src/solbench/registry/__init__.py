"""Solution discovery for solbench."""

from solbench.registry.discovery import SolutionRegistry, command_for

__all__ = ["SolutionRegistry", "command_for"]
