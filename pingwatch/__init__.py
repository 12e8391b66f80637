"""pingwatch — HTTP/HTTPS uptime monitoring with SMS alerts."""

__version__ = "0.1.0"
