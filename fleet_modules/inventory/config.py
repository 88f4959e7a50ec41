"""
Inventory Configuration Schema.

Document-number prefixes for stock movements and the rules for naming
revolving-stock mirrors of used parts.
"""

from dataclasses import dataclass
from typing import Self

from fleet_kernel.logging_config import get_logger

logger = get_logger("modules.inventory.config")


@dataclass
class InventoryConfig:
    """
    Configuration schema for the stock ledger.

    Override at instantiation or load from YAML via ``fleet_config``:

        config = InventoryConfig(withdrawal_prefix="ISS")
    """

    # Withdrawal slips: WD-2025-00001
    withdrawal_prefix: str = "WD"
    withdrawal_sequence_width: int = 5

    # Cash bills for used-stock sales: CB-2025-0001
    sale_bill_prefix: str = "CB"
    sale_bill_sequence_width: int = 4

    # Revolving-stock mirrors: <original code><suffix>
    revolving_code_suffix: str = "-R"
    revolving_generated_code_length: int = 10
    revolving_default_category: str = "Miscellaneous"

    def __post_init__(self):
        for name in ("withdrawal_prefix", "sale_bill_prefix", "revolving_code_suffix"):
            if not getattr(self, name):
                raise ValueError(f"{name} cannot be empty")
        if self.withdrawal_prefix == self.sale_bill_prefix:
            raise ValueError("withdrawal_prefix and sale_bill_prefix must differ")
        for name in (
            "withdrawal_sequence_width",
            "sale_bill_sequence_width",
            "revolving_generated_code_length",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")

        logger.info(
            "inventory_config_initialized",
            extra={
                "withdrawal_prefix": self.withdrawal_prefix,
                "sale_bill_prefix": self.sale_bill_prefix,
                "revolving_code_suffix": self.revolving_code_suffix,
            },
        )

    @property
    def sequence_widths(self) -> dict[str, int]:
        return {
            self.withdrawal_prefix: self.withdrawal_sequence_width,
            self.sale_bill_prefix: self.sale_bill_sequence_width,
        }

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with the workshop's standard numbering."""
        logger.info("inventory_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from dictionary (e.g., loaded from file)."""
        logger.info(
            "inventory_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)
