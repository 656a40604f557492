"""Backend utilities"""
from .auth import get_current_user, require_admin
from .logger import get_logger, setup_logging

__all__ = ["get_current_user", "require_admin", "get_logger", "setup_logging"]
