"""
DESIST Configuration Module

Provides centralized configuration management with:
- Environment-based settings loading
- Validation of timing and retry bounds
- Secure handling of secrets
"""

from desist.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
