"""
Utils Package
=============
Utility functions and helpers.
"""

from .cache_keys import build_admin_key, build_analytics_key

__all__ = ['build_admin_key', 'build_analytics_key']
