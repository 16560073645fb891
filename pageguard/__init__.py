"""pageguard: detects and neutralises indirect prompt injection in rendered pages."""

__version__ = "1.0.0"
