"""README generator service: GitHub repository analysis, prompt compilation and PR publishing."""

__version__ = "0.1.0"
