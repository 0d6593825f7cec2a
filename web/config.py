"""
Web server configuration.
"""
from core.config import config, VERSION

# Web server settings
WEB_HOST = config.web.host
WEB_PORT = config.web.port

__all__ = ["WEB_HOST", "WEB_PORT", "VERSION"]
