"""stackwise: plan and apply ordered stacks of infrastructure resource groups."""

__version__ = "0.1.0"
