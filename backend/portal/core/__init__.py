"""
Core module for application configuration and utilities.

The assessment engine lives in ``portal.core.assessment`` and is imported
directly rather than re-exported here.
"""
from .config import settings
