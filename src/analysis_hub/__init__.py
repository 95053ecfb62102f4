"""analysis-hub: unified static, formal and cloud code analysis."""

__version__ = "0.1.0"
