"""
Used-Part Module.

Removed-part batches and the dispositions that consume them.
"""

from fleet_modules.used_parts.models import (
    DispositionType,
    UsedPartBatch,
    UsedPartDisposition,
)
from fleet_modules.used_parts.service import UsedPartService

__all__ = [
    "DispositionType",
    "UsedPartBatch",
    "UsedPartDisposition",
    "UsedPartService",
]
