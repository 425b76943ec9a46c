"""
Pairwise hardware checks that the declarative rules cannot express.

Every checker takes raw characteristic strings and returns a CheckResult.
A checker's `fail_open` flag decides what an internal error turns into:
a bug inside a checker never blocks a build. When the inputs cannot be
interpreted the checkers allow the pair, except form factor, which refuses it.
"""

import functools
import inspect
import logging
import re
from collections import namedtuple

from .normalize import (
    FORM_FACTOR, PCIE, POWER, digits_only, normalize_value, parse_int
)

logger = logging.getLogger(__name__)

# Locale tokens used by the catalog's data entry
NVME_AFFIRMATIVE = ("есть", "да")
UNIVERSAL_SOCKET = "универсальный"
AIR_MARKER = "воздушн"
LIQUID_MARKER = "жидкост"
AIO_MARKER = "сжо"

# Largest first
FORM_FACTOR_RANKS = ("EATX", "ATX", "MATX", "ITX")
# Probe order for substrings: most specific names before "ATX"
_FORM_FACTOR_PROBES = ("EATX", "MATX", "ITX", "ATX")


class CheckResult(namedtuple("CheckResult", ["compatible", "reason"], defaults=(None,))):
    __slots__ = ()

    def to_dict(self):
        if self.compatible:
            return {"compatible": True}
        return {"compatible": False, "reason": self.reason}


COMPATIBLE = CheckResult(True)


def checker(fail_open=True, unresolved_compatible=True, unresolved_reason=None):
    """
    Decorates a checker with its error-recovery policy.

    A checker body returns None when it cannot interpret its inputs; the
    wrapper turns that into the checker's unresolved answer.

    :param fail_open: If True an unexpected exception yields COMPATIBLE,
        otherwise an incompatible result naming the checker.
    :param unresolved_compatible: What the checker answers when it cannot
        interpret its inputs.
    :param unresolved_reason: Format string for the incompatible answer,
        filled with the checker's arguments in signature order.
    """
    def decorate(func):
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                result = func(*args, **kwargs)
            except Exception:
                logger.warning("%s raised; failing %s", func.__name__,
                               "open" if fail_open else "closed", exc_info=True)
                if fail_open:
                    return COMPATIBLE
                return CheckResult(False, f"Не удалось выполнить проверку {func.__name__}")
            if result is not None:
                return result
            logger.debug("%s could not resolve %r", func.__name__, args)
            if unresolved_compatible:
                return COMPATIBLE
            reason = unresolved_reason or "Не удалось определить совместимость"
            bound = signature.bind(*args, **kwargs)
            return CheckResult(False, reason.format(*bound.arguments.values()))
        wrapper.fail_open = fail_open
        wrapper.unresolved_compatible = unresolved_compatible
        return wrapper
    return decorate


def _clean(value):
    return (value or "").strip().lower()


@checker(fail_open=True)
def check_storage_compatibility(storage_type, storage_interface, mb_nvme_support,
                                mb_m2_slots, mb_sata_ports):
    """
    Checks that a drive has somewhere to plug into on the motherboard.

    :param storage_type: Drive type (e.g. 'M.2 SSD', 'HDD').
    :param storage_interface: Drive interface (e.g. 'NVMe PCIe 4.0', 'SATA III').
    :param mb_nvme_support: Motherboard NVMe support text ('есть', 'да', 'нет').
    :param mb_m2_slots: Motherboard M.2 slot count as text.
    :param mb_sata_ports: Motherboard SATA port count as text.
    :return: CheckResult.
    """
    kind = _clean(storage_type)
    interface = _clean(storage_interface)
    nvme_support = _clean(mb_nvme_support)

    if "m.2" in kind:
        if not mb_m2_slots or parse_int(mb_m2_slots) == 0:
            return CheckResult(False, "Материнская плата не имеет слотов M.2 для установки накопителя")
        if "nvme" in interface and not any(token in nvme_support for token in NVME_AFFIRMATIVE):
            return CheckResult(False, "Материнская плата не поддерживает накопители NVMe")
        return COMPATIBLE

    if "ssd" in kind or "hdd" in kind or "sata" in interface:
        if not mb_sata_ports or parse_int(mb_sata_ports) == 0:
            return CheckResult(False, "Материнская плата не имеет портов SATA для подключения накопителя")
        return COMPATIBLE

    # Unknown drive type
    return None


@checker(fail_open=True)
def check_cooler_clearance(cooler_type, cooler_size, case_max_cooler_height, case_radiator_support):
    """
    Case-side half of the cooling check: tower height for air coolers,
    radiator mount for liquid ones. Unparseable figures skip the check.
    """
    kind = _clean(cooler_type)

    if AIR_MARKER in kind or LIQUID_MARKER not in kind:
        if cooler_size and case_max_cooler_height:
            height = digits_only(cooler_size)
            max_height = digits_only(case_max_cooler_height)
            if height is not None and max_height is not None and height > max_height:
                return CheckResult(
                    False,
                    f"Высота кулера ({cooler_size}) превышает максимально допустимую "
                    f"для корпуса ({case_max_cooler_height})",
                )
    elif LIQUID_MARKER in kind or AIO_MARKER in kind:
        if cooler_size and case_radiator_support:
            radiator = re.sub(r"\D", "", cooler_size)
            if radiator not in case_radiator_support:
                return CheckResult(False, f"Корпус не поддерживает установку радиатора размером {cooler_size}")

    return COMPATIBLE


@checker(fail_open=True)
def check_cooling_compatibility(cooler_type, cooler_sockets, cooler_tdp_rating, cooler_size,
                                cpu_socket, cpu_tdp, case_max_cooler_height, case_radiator_support):
    """
    Checks a CPU cooler against the CPU it sits on and the case around it.

    :param cooler_type: Contains 'воздушн' for air or 'жидкост' for liquid cooling.
    :param cooler_sockets: Comma-separated sockets the cooler mounts on.
    :param cooler_tdp_rating: Heat the cooler can dissipate (e.g. '180 W').
    :param cooler_size: Tower height (air) or radiator size (liquid).
    :param cpu_socket: CPU socket.
    :param cpu_tdp: CPU TDP.
    :param case_max_cooler_height: Max tower height the case accepts.
    :param case_radiator_support: Radiator sizes the case accepts.
    :return: CheckResult.
    """
    supported = [socket.strip() for socket in (cooler_sockets or "").split(",")]
    socket = (cpu_socket or "").strip()

    if not any(socket == entry or UNIVERSAL_SOCKET in entry or socket in entry for entry in supported):
        return CheckResult(False, f"Система охлаждения не поддерживает сокет {cpu_socket}")

    if cooler_tdp_rating and cpu_tdp:
        cooler_tdp = digits_only(cooler_tdp_rating)
        processor_tdp = digits_only(cpu_tdp)
        if cooler_tdp is not None and processor_tdp is not None and cooler_tdp < processor_tdp:
            return CheckResult(
                False,
                f"Система охлаждения с TDP {cooler_tdp_rating} недостаточна для процессора с TDP {cpu_tdp}",
            )

    return check_cooler_clearance(cooler_type, cooler_size, case_max_cooler_height, case_radiator_support)


_PCIE_VERSION = re.compile(r"pcie(\d\.\d|\d(?![\dx]))")


@checker(fail_open=True)
def check_pcie_compatibility(motherboard_pcie, gpu_pcie):
    """
    A slot of the same or a newer PCIe generation takes the card.
    Anything that cannot be resolved is treated as compatible.
    """
    board = normalize_value(motherboard_pcie, PCIE)
    card = normalize_value(gpu_pcie, PCIE)

    if board == card:
        return COMPATIBLE

    board_match = _PCIE_VERSION.search(board)
    card_match = _PCIE_VERSION.search(card)
    if board_match and card_match:
        board_version = float(board_match.group(1))
        card_version = float(card_match.group(1))
        if board_version >= card_version:
            return COMPATIBLE
        return CheckResult(
            False,
            f"Материнская плата с PCIe {board_version:g} не поддерживает видеокарту с PCIe {card_version:g}",
        )

    if ("16x" in board or "pcie" in board) and ("16x" in card or "pcie" in card):
        return COMPATIBLE
    return None


_SIX_PLUS_TWO = r"6\+2\s*pin"
_EIGHT_PIN = r"(?<!\d)8\s*pin"
_SIX_PIN = r"(?<!\d)6\s*pin"
_SIXTEEN_PIN = r"(?<!\d)16\s*pin"


def _count_connectors(text, token):
    match = re.search(r"(\d+)\s*x\s*" + token, text)
    if match:
        return int(match.group(1))
    return 1 if re.search(token, text) else 0


def _has_high_power(text):
    return "12vhpwr" in text or re.search(_SIXTEEN_PIN, text) is not None


@checker(fail_open=True)
def check_power_connectors_compatibility(psu_connectors, required_connectors):
    """
    Checks that a PSU's cables cover what a component asks for.

    6+2 pin plugs stand in for 8 pin ones first; whatever is left over
    can then serve 6 pin sockets. 12VHPWR and 16 pin are the same plug.

    :param psu_connectors: PSU description (e.g. '2x 8 pin, 1x 6 pin').
    :param required_connectors: Requirement (e.g. '1x 8 pin').
    :return: CheckResult.
    """
    psu = normalize_value(psu_connectors, POWER)
    required = normalize_value(required_connectors, POWER)

    if psu == required:
        return COMPATIBLE
    if _has_high_power(psu) and _has_high_power(required):
        return COMPATIBLE

    psu_6plus2 = _count_connectors(psu, _SIX_PLUS_TWO)
    # A PSU listing 6+2 plugs is counted by those alone
    has_6plus2 = "6+2" in psu
    psu_8pin = 0 if has_6plus2 else _count_connectors(psu, _EIGHT_PIN)
    psu_6pin = 0 if has_6plus2 else _count_connectors(psu, _SIX_PIN)
    psu_16pin = 1 if _has_high_power(psu) else 0

    req_8pin = _count_connectors(required, _EIGHT_PIN)
    req_6pin = _count_connectors(required, _SIX_PIN)
    req_16pin = 1 if _has_high_power(required) else 0

    if req_16pin > 0 and psu_16pin == 0:
        return CheckResult(False, "Блок питания не имеет 12VHPWR/16-pin разъема, который требуется для компонента")

    if req_8pin > psu_8pin + psu_6plus2:
        return CheckResult(
            False,
            f"Недостаточно 8-pin разъемов питания: требуется {req_8pin}, доступно {psu_8pin + psu_6plus2}",
        )

    remaining_6plus2 = psu_6plus2 - max(0, req_8pin - psu_8pin)
    if req_6pin > psu_6pin + remaining_6plus2:
        return CheckResult(
            False,
            f"Недостаточно 6-pin разъемов питания: требуется {req_6pin}, доступно {psu_6pin + remaining_6plus2}",
        )

    return COMPATIBLE


def _form_factor_rank(value):
    """Index into FORM_FACTOR_RANKS of the largest form factor named in value, or None."""
    ranks = []
    for token in re.split(r"[,/;\s]+", value):
        token = token.replace("-", "")
        if not token:
            continue
        if token in FORM_FACTOR_RANKS:
            ranks.append(FORM_FACTOR_RANKS.index(token))
            continue
        for probe in _FORM_FACTOR_PROBES:
            if probe in token:
                ranks.append(FORM_FACTOR_RANKS.index(probe))
                break
    return min(ranks) if ranks else None


@checker(fail_open=True, unresolved_compatible=False,
         unresolved_reason="Форм-фактор материнской платы {1} не совместим с корпусом {0}")
def check_form_factor_compatibility(case_form_factor, motherboard_form_factor):
    """
    Checks that a case takes a board of the given form factor.

    Unlike the other checkers an unresolvable pair is incompatible.

    :param case_form_factor: Case form factor, possibly a comma-joined list.
    :param motherboard_form_factor: Board form factor.
    :return: CheckResult.
    """
    case = normalize_value(case_form_factor, FORM_FACTOR)
    board = normalize_value(motherboard_form_factor, FORM_FACTOR)

    if case == board or board in case:
        return COMPATIBLE

    case_rank = _form_factor_rank(case)
    board_rank = _form_factor_rank(board)
    if case_rank is not None and board_rank is not None:
        if case_rank <= board_rank:
            return COMPATIBLE
        return CheckResult(
            False,
            f"Корпус ({case_form_factor}) не поддерживает материнскую плату с форм-фактором {motherboard_form_factor}",
        )

    if "ATX" in case and ("MATX" in board or "ITX" in board):
        return COMPATIBLE
    if "MATX" in case and "ITX" in board:
        return COMPATIBLE

    return None
