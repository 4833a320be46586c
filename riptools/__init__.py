"""Tool registry, runner, built-in tools and workspace checkpoints for coding agents."""

__version__ = "0.1.0"