"""Kernel services shared by every module."""

from fleet_kernel.services.sequence_service import (
    DocumentNumber,
    DocumentNumberAllocator,
    SequenceCounter,
    SequenceService,
    format_document_number,
    parse_document_number,
)

__all__ = [
    "DocumentNumber",
    "DocumentNumberAllocator",
    "SequenceCounter",
    "SequenceService",
    "format_document_number",
    "parse_document_number",
]
