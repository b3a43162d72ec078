# x_cli
# Natural language to shell commands through configurable step pipelines.

__version__ = "0.1.0"
