"""Tests for the specialized pairwise checkers."""

from rigcheck.categories import COOLER_TYPE_AIR, COOLER_TYPE_LIQUID
from rigcheck.checkers import (
    CheckResult,
    check_cooler_clearance,
    check_cooling_compatibility,
    check_form_factor_compatibility,
    check_pcie_compatibility,
    check_power_connectors_compatibility,
    check_storage_compatibility,
    checker,
)


# =============================================================================
# STORAGE
# =============================================================================


class TestStorageCompatibility:
    """Tests for check_storage_compatibility."""

    def test_m2_nvme_on_supporting_board(self):
        assert check_storage_compatibility("M.2 SSD", "NVMe PCIe 3.0", "есть", "2", "4").compatible
        assert check_storage_compatibility("M.2 SSD", "NVMe PCIe 4.0", "Да", "1", "4").compatible

    def test_m2_without_slots(self):
        result = check_storage_compatibility("M.2 SSD", "NVMe", "есть", "0", "4")
        assert not result.compatible
        assert result.reason == "Материнская плата не имеет слотов M.2 для установки накопителя"

    def test_nvme_not_supported(self):
        result = check_storage_compatibility("M.2 SSD", "NVMe PCIe 3.0", "нет", "2", "4")
        assert not result.compatible
        assert result.reason == "Материнская плата не поддерживает накопители NVMe"

    def test_m2_sata_does_not_need_nvme(self):
        assert check_storage_compatibility("M.2 SSD", "SATA", "нет", "1", "0").compatible

    def test_sata_drive_needs_ports(self):
        result = check_storage_compatibility("HDD", "SATA III", "", "0", "0")
        assert not result.compatible
        assert result.reason == "Материнская плата не имеет портов SATA для подключения накопителя"
        assert check_storage_compatibility("HDD", "SATA III", "", "0", "6").compatible

    def test_unknown_drive_type_passes(self):
        assert check_storage_compatibility("Optane", "U.2", "", "0", "0").compatible

    def test_internal_error_fails_open(self):
        assert check_storage_compatibility(5, "", "", "1", "1").compatible
        assert check_storage_compatibility.fail_open is True


# =============================================================================
# COOLING
# =============================================================================


class TestCoolingCompatibility:
    """Tests for check_cooling_compatibility."""

    def test_air_cooler_too_tall_for_case(self):
        result = check_cooling_compatibility(
            COOLER_TYPE_AIR, "AM4, AM5", "250 W", "165mm", "AM4", "65 W", "160mm", "")
        assert not result.compatible
        assert "165mm" in result.reason
        assert "160mm" in result.reason

    def test_air_cooler_fits(self):
        result = check_cooling_compatibility(
            COOLER_TYPE_AIR, "AM4, AM5", "250 W", "158mm", "AM4", "65 W", "160mm", "")
        assert result.compatible

    def test_socket_not_supported(self):
        result = check_cooling_compatibility(
            COOLER_TYPE_AIR, "AM4, AM5", "250 W", "150mm", "LGA1700", "65 W", "", "")
        assert not result.compatible
        assert result.reason == "Система охлаждения не поддерживает сокет LGA1700"

    def test_universal_mount(self):
        result = check_cooling_compatibility(
            COOLER_TYPE_AIR, "универсальный", "250 W", "150mm", "LGA1700", "65 W", "", "")
        assert result.compatible

    def test_tdp_too_low(self):
        result = check_cooling_compatibility(
            COOLER_TYPE_AIR, "LGA1700", "120 W", "150mm", "LGA1700", "148 W", "", "")
        assert not result.compatible
        assert result.reason == "Система охлаждения с TDP 120 W недостаточна для процессора с TDP 148 W"

    def test_radiator_not_supported(self):
        result = check_cooling_compatibility(
            COOLER_TYPE_LIQUID, "AM4", "300 W", "360 мм", "AM4", "65 W", "", "120, 240")
        assert not result.compatible
        assert result.reason == "Корпус не поддерживает установку радиатора размером 360 мм"

    def test_radiator_supported(self):
        result = check_cooling_compatibility(
            COOLER_TYPE_LIQUID, "AM4", "300 W", "240 мм", "AM4", "65 W", "", "120, 240")
        assert result.compatible

    def test_no_case_skips_clearance(self):
        result = check_cooling_compatibility(
            COOLER_TYPE_AIR, "AM4", "250 W", "190mm", "AM4", "65 W", "", "")
        assert result.compatible


class TestCoolerClearance:
    """Tests for check_cooler_clearance (the case-side half)."""

    def test_unknown_cooler_type_is_treated_as_air(self):
        assert not check_cooler_clearance("", "170 мм", "160 мм", "").compatible

    def test_liquid_ignores_tower_height(self):
        assert check_cooler_clearance(COOLER_TYPE_LIQUID, "240 мм", "100 мм", "240").compatible


# =============================================================================
# PCIE
# =============================================================================


class TestPcieCompatibility:
    """Tests for check_pcie_compatibility."""

    def test_same_slot_different_spelling(self):
        assert check_pcie_compatibility("PCI-E 4.0 x16", "PCIe 4.0 x16").compatible

    def test_newer_board_takes_older_card(self):
        assert check_pcie_compatibility("PCIe 4.0 x16", "PCIe 3.0 x16").compatible

    def test_older_board_rejects_newer_card(self):
        result = check_pcie_compatibility("PCIe 3.0 x16", "PCIe 4.0 x16")
        assert not result.compatible
        assert result.reason == "Материнская плата с PCIe 3 не поддерживает видеокарту с PCIe 4"

    def test_unresolvable_versions_pass(self):
        assert check_pcie_compatibility("x16", "x8").compatible

    def test_unversioned_board_takes_versioned_card(self):
        assert check_pcie_compatibility("PCIe x16", "PCIe 4.0 x16").compatible
        assert check_pcie_compatibility("PCIe 3.0 x16", "PCI-E x16").compatible

    def test_lane_count_is_not_read_as_version(self):
        assert check_pcie_compatibility("PCIe x8", "PCIe 5.0 x16").compatible


# =============================================================================
# POWER CONNECTORS
# =============================================================================


class TestPowerConnectorsCompatibility:
    """Tests for check_power_connectors_compatibility."""

    def test_enough_eight_pin(self):
        assert check_power_connectors_compatibility("2x 8 pin, 1x 6 pin", "1x 8 pin").compatible

    def test_six_plus_two_substitutes_for_eight_pin(self):
        assert check_power_connectors_compatibility("1x 6+2 pin", "1x 8 pin").compatible

    def test_not_enough_eight_pin(self):
        result = check_power_connectors_compatibility("1x 6 pin", "2x 8 pin")
        assert not result.compatible
        assert result.reason == "Недостаточно 8-pin разъемов питания: требуется 2, доступно 0"

    def test_leftover_six_plus_two_serves_six_pin(self):
        assert check_power_connectors_compatibility("2x 6+2 pin", "1x 8 pin, 1x 6 pin").compatible

    def test_six_pin_shortfall(self):
        result = check_power_connectors_compatibility("1x 6+2 pin", "1x 8 pin, 1x 6 pin")
        assert not result.compatible
        assert "6-pin" in result.reason

    def test_psu_with_six_plus_two_counts_only_those(self):
        result = check_power_connectors_compatibility("2x 8 pin, 2x 6+2 pin", "3x 8 pin")
        assert not result.compatible
        assert result.reason == "Недостаточно 8-pin разъемов питания: требуется 3, доступно 2"
        assert check_power_connectors_compatibility("2x 8 pin, 2x 6+2 pin", "2x 8 pin").compatible

    def test_sixteen_pin_is_not_a_six_pin(self):
        result = check_power_connectors_compatibility("1x 16 pin", "1x 6 pin")
        assert not result.compatible
        assert "6-pin" in result.reason

    def test_12vhpwr_and_16_pin_are_the_same_plug(self):
        assert check_power_connectors_compatibility("1x 12VHPWR", "1x 16-pin").compatible

    def test_missing_16_pin(self):
        result = check_power_connectors_compatibility("2x 8 pin", "1x 16 pin")
        assert not result.compatible
        assert "12VHPWR" in result.reason


# =============================================================================
# FORM FACTOR
# =============================================================================


class TestFormFactorCompatibility:
    """Tests for check_form_factor_compatibility."""

    def test_atx_case_takes_micro_atx_board(self):
        assert check_form_factor_compatibility("ATX", "Micro-ATX").compatible

    def test_listed_form_factor(self):
        assert check_form_factor_compatibility("ATX, Micro-ATX, Mini-ITX", "Mini-ITX").compatible

    def test_small_case_rejects_larger_board(self):
        result = check_form_factor_compatibility("Micro-ATX", "ATX")
        assert not result.compatible
        assert result.reason == "Корпус (Micro-ATX) не поддерживает материнскую плату с форм-фактором ATX"

    def test_eatx_board_in_itx_case(self):
        assert not check_form_factor_compatibility("Mini-ITX", "E-ATX").compatible

    def test_unresolved_pair_fails_closed(self):
        result = check_form_factor_compatibility("Tower", "SSI-CEB")
        assert not result.compatible
        assert result.reason == "Форм-фактор материнской платы SSI-CEB не совместим с корпусом Tower"
        assert check_form_factor_compatibility.unresolved_compatible is False

    def test_internal_error_still_fails_open(self):
        assert check_form_factor_compatibility(5, "ATX").compatible
        assert check_form_factor_compatibility.fail_open is True

    def test_unresolved_reason_with_keyword_arguments(self):
        result = check_form_factor_compatibility(case_form_factor="Cube", motherboard_form_factor="WTX")
        assert result.reason == "Форм-фактор материнской платы WTX не совместим с корпусом Cube"


# =============================================================================
# CHECKER POLICY
# =============================================================================


class TestCheckerPolicy:
    """Tests for the @checker decorator's policy flags."""

    def test_unresolved_answer_follows_flag(self):
        @checker(unresolved_compatible=True)
        def lenient(value):
            return None

        @checker(unresolved_compatible=False, unresolved_reason="Неизвестное значение {0}")
        def strict(value):
            return None

        assert lenient("x") == CheckResult(True)
        assert strict("x") == CheckResult(False, "Неизвестное значение x")

    def test_resolved_answer_is_returned_unchanged(self):
        @checker(unresolved_compatible=False)
        def refuses(value):
            return CheckResult(False, "нет")

        assert refuses("x") == CheckResult(False, "нет")

    def test_fail_closed_on_error(self):
        @checker(fail_open=False)
        def broken(value):
            raise ValueError(value)

        result = broken("x")
        assert not result.compatible
        assert "broken" in result.reason
