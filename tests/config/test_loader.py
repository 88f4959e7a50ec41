"""
Tests for fleet_config.loader.
"""

from decimal import Decimal

import pytest
import yaml

from fleet_config import FleetConfig, load_config
from fleet_modules.inventory.config import InventoryConfig
from fleet_modules.procurement.config import ProcurementConfig


def _write(tmp_path, data, name="fleet.yaml"):
    path = tmp_path / name
    path.write_text(yaml.safe_dump(data) if not isinstance(data, str) else data)
    return path


class TestLoadConfig:

    def test_empty_file_gives_defaults(self, tmp_path):
        config = load_config(_write(tmp_path, ""))

        assert config == FleetConfig()
        assert config.procurement.default_vat_rate == Decimal("7")
        assert config.inventory.sale_bill_prefix == "CB"

    def test_overrides(self, tmp_path):
        path = _write(tmp_path, {
            "procurement": {
                "default_wht_enabled": True,
                "default_vat_rate": 10,
                "require_receipt_evidence": False,
            },
            "inventory": {"withdrawal_prefix": "ISS", "revolving_code_suffix": "-REV"},
        })

        config = load_config(path)

        assert config.procurement.default_wht_enabled is True
        assert config.procurement.default_vat_rate == Decimal("10")
        assert config.procurement.require_receipt_evidence is False
        assert config.inventory.withdrawal_prefix == "ISS"
        assert config.inventory.sequence_widths == {"ISS": 5, "CB": 4}

    def test_partial_sections(self, tmp_path):
        config = load_config(_write(tmp_path, {"inventory": {"sale_bill_prefix": "BILL"}}))

        assert config.procurement == ProcurementConfig()
        assert config.inventory.sale_bill_prefix == "BILL"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "absent.yaml")

    def test_unknown_section(self, tmp_path):
        with pytest.raises(ValueError, match="unknown sections: billing"):
            load_config(_write(tmp_path, {"billing": {}}))

    def test_unknown_key(self, tmp_path):
        with pytest.raises(ValueError, match="vat"):
            load_config(_write(tmp_path, {"procurement": {"vat": 7}}))

    def test_non_mapping_top_level(self, tmp_path):
        with pytest.raises(ValueError, match="expected a mapping"):
            load_config(_write(tmp_path, "- procurement\n- inventory\n"))

    def test_invalid_value_rejected(self, tmp_path):
        with pytest.raises(ValueError, match="must differ"):
            load_config(_write(tmp_path, {"inventory": {"withdrawal_prefix": "CB"}}))


class TestModuleConfigs:

    def test_negative_tax_rate(self):
        with pytest.raises(ValueError):
            ProcurementConfig(default_vat_rate=Decimal("-1"))

    def test_default_tax_settings(self):
        settings = ProcurementConfig(default_wht_enabled=True).default_tax_settings()

        assert settings.vat_rate == Decimal("7")
        assert settings.wht_enabled is True
        assert settings.price_includes_vat is False

    def test_empty_suffix(self):
        with pytest.raises(ValueError):
            InventoryConfig(revolving_code_suffix="")
