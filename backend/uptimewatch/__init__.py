"""uptimewatch - HTTP(S) uptime monitoring engine."""

__version__ = "1.0.0"
