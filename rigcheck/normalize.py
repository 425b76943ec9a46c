import re

PCIE = "pcie"
SOCKET = "socket"
MEMORY = "memory"
POWER = "power"
FORM_FACTOR = "form_factor"
DIMENSIONS = "dimensions"

_LEADING_INT = re.compile(r'^\s*([+-]?\d+)')
_LEADING_FLOAT = re.compile(r'^\s*([+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?)')


def _normalize_pcie(s):
    s = s.lower()
    s = re.sub(r'\s+', '', s)
    s = re.sub(r'x(\d+)', r'\1x', s)
    s = re.sub(r'pci-e|pciexpress', 'pcie', s)
    s = re.sub(r'(\d+)\s*x\s*', r'\1x', s)
    return re.sub(r'\([^)]*\)', '', s)


def _normalize_socket(s):
    s = re.sub(r'\s*\([^)]*\)', '', s).strip()
    # Intel names are kept as entered ("LGA1700" vs "LGA 1700" stay distinct)
    if not s.startswith('LGA'):
        s = s.upper()
    return s


def _normalize_memory(s):
    s = re.sub(r'\s+', '', s).replace('SDRAM', '')
    return s.upper()


def _normalize_power(s):
    s = s.lower().replace('-', ' ').replace('pins', 'pin')
    s = re.sub(r'\s+', ' ', s).strip()
    return re.sub(r'eps |pcie ', '', s)


def _normalize_form_factor(s):
    s = s.upper()
    return s.replace('STANDARD-', '').replace('MICRO-', 'M').replace('MINI-', '')


def _normalize_dimensions(s):
    match = re.search(r'(\d+(?:\.\d+)?)', s)
    return match.group(0) if match else s


_NORMALIZERS = {
    PCIE: _normalize_pcie,
    SOCKET: _normalize_socket,
    MEMORY: _normalize_memory,
    POWER: _normalize_power,
    FORM_FACTOR: _normalize_form_factor,
    DIMENSIONS: _normalize_dimensions,
}


def normalize_value(value, kind):
    """
    Canonicalizes a raw characteristic string so two spellings of the
    same thing compare equal (e.g. 'PCI-E x16' and 'pcie 16x').

    Never raises: unknown kinds and empty values come back trimmed.

    :param value: The raw value from the catalog.
    :param kind: PCIE, SOCKET, MEMORY, POWER, FORM_FACTOR or DIMENSIONS.
    :return: The normalized string.
    """
    if not value:
        return value or ''
    result = value.strip()
    normalizer = _NORMALIZERS.get(kind)
    return normalizer(result) if normalizer else result


def _text(value):
    return '' if value is None else str(value)


def parse_int(value):
    """Leading integer of a string ('8 шт' -> 8), or None."""
    match = _LEADING_INT.match(_text(value))
    return int(match.group(1)) if match else None


def parse_float(value):
    """Leading decimal of a string ('165mm' -> 165.0), or None."""
    match = _LEADING_FLOAT.match(_text(value))
    return float(match.group(1)) if match else None


def digits_only(value):
    """Integer made of every digit in the string ('1 x 240 мм' -> 1240), or None."""
    digits = re.sub(r'\D', '', _text(value))
    return int(digits) if digits else None
