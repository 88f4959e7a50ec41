"""
Procurement Configuration Schema.

Defines the structure and defaults for procurement settings: document
numbering, the tax defaults offered when an order is drafted, and where
goods receipt evidence is stored.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Self

from fleet_engines.po_financials import TaxSettings
from fleet_kernel.logging_config import get_logger

logger = get_logger("modules.procurement.config")


@dataclass
class ProcurementConfig:
    """
    Configuration schema for procurement module.

    Defaults match Thai practice: 7% VAT added on top of prices, 3%
    withholding available but off unless the supplier is a service
    provider.  Override at instantiation or load from YAML:

        config = ProcurementConfig(default_wht_enabled=True)
    """

    # Numbering: PR-2025-00001 / PO-2025-00001
    requisition_prefix: str = "PR"
    requisition_sequence_width: int = 5
    purchase_order_prefix: str = "PO"
    purchase_order_sequence_width: int = 5

    # Tax defaults for new purchase orders
    default_vat_rate: Decimal = Decimal("7")
    default_wht_rate: Decimal = Decimal("3")
    default_vat_enabled: bool = True
    default_wht_enabled: bool = False
    default_price_includes_vat: bool = False

    # Goods receipt evidence: <root>/<po number>/<timestamp>_<file name>
    evidence_path_root: str = "receive-po"
    require_receipt_evidence: bool = True

    def __post_init__(self):
        if not self.requisition_prefix or not self.purchase_order_prefix:
            raise ValueError("document prefixes cannot be empty")
        if self.requisition_prefix == self.purchase_order_prefix:
            raise ValueError("requisition_prefix and purchase_order_prefix must differ")
        if self.requisition_sequence_width <= 0 or self.purchase_order_sequence_width <= 0:
            raise ValueError("sequence widths must be positive")

        # Values loaded from YAML may arrive as int/float/str
        self.default_vat_rate = Decimal(str(self.default_vat_rate))
        self.default_wht_rate = Decimal(str(self.default_wht_rate))
        if self.default_vat_rate < 0 or self.default_wht_rate < 0:
            raise ValueError("tax rates cannot be negative")
        if self.default_vat_rate > Decimal("100") or self.default_wht_rate > Decimal("100"):
            raise ValueError("tax rates cannot exceed 100%")
        if not self.evidence_path_root.strip("/"):
            raise ValueError("evidence_path_root cannot be empty")

        logger.info(
            "procurement_config_initialized",
            extra={
                "requisition_prefix": self.requisition_prefix,
                "purchase_order_prefix": self.purchase_order_prefix,
                "default_vat_rate": str(self.default_vat_rate),
                "default_wht_rate": str(self.default_wht_rate),
                "require_receipt_evidence": self.require_receipt_evidence,
            },
        )

    @property
    def sequence_widths(self) -> dict[str, int]:
        return {
            self.requisition_prefix: self.requisition_sequence_width,
            self.purchase_order_prefix: self.purchase_order_sequence_width,
        }

    def default_tax_settings(self) -> TaxSettings:
        return TaxSettings(
            vat_rate=self.default_vat_rate,
            wht_rate=self.default_wht_rate,
            vat_enabled=self.default_vat_enabled,
            wht_enabled=self.default_wht_enabled,
            price_includes_vat=self.default_price_includes_vat,
        )

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with the workshop's standard settings."""
        logger.info("procurement_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from dictionary (e.g., loaded from file)."""
        logger.info(
            "procurement_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)
