"""Sprint burndown, velocity and capacity reporting for Productive.io task lists."""

__version__ = "0.1.0"
