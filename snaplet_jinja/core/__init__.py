"""Core utilities shared by the snaplet layer.

    from snaplet_jinja.core import get_logger
"""

from snaplet_jinja.core.lens import Lens
from snaplet_jinja.core.logger import (
    configure_logging,
    get_logger,
)

__all__ = [
    "Lens",
    "configure_logging",
    "get_logger",
]
