"""Catalog category slugs and characteristic slugs the engine knows by name.

The slugs and the Cyrillic tokens below are agreements with the catalog's
data-entry format, not translations.
"""

from collections import namedtuple

MOTHERBOARD = "materinskie-platy"
CPU = "processory"
CASE = "korpusa"

STORAGE_ROOT = "nakopiteli"
HDD_25 = "zhestkie-diski-25"
HDD_35 = "zhestkie-diski-35"
SSD = "ssd-nakopiteli"
SSD_M2 = "ssd-m2-nakopiteli"
STORAGE_DEVICES = (SSD_M2, SSD, HDD_25, HDD_35)

COOLING_ROOT = "okhlazhdenie"
AIR_COOLER = "kulery-dlya-processorov"
LIQUID_COOLER = "sistemy-zhidkostnogo-ohlazhdeniya"
COOLERS = (AIR_COOLER, LIQUID_COOLER)

# Cooler type tokens understood by check_cooling_compatibility
COOLER_TYPE_AIR = "воздушное"
COOLER_TYPE_LIQUID = "жидкостное"

# Characteristic type slugs read by the specialized checks
STORAGE_TYPE = "type"
STORAGE_INTERFACE = "interface"
NVME_SUPPORT = "nvme_support"
M2_SLOTS = "m2_slots"
SATA_PORTS = "sata_ports"
SOCKET = "socket"
TDP = "tdp"
TDP_RATING = "tdp_rating"
HEIGHT = "height"
RADIATOR_SIZE = "radiator_size"
MAX_COOLER_HEIGHT = "max_cpu_cooler_height"
RADIATOR_MOUNTS = ("front_radiator", "top_radiator", "rear_radiator")

RequiredGroup = namedtuple("RequiredGroup", ["name", "slugs", "message"])

REQUIRED_GROUPS = (
    RequiredGroup(
        "Накопители",
        frozenset({STORAGE_ROOT, *STORAGE_DEVICES}),
        "В сборке отсутствуют накопители (HDD или SSD)",
    ),
    RequiredGroup(
        "Системы охлаждения",
        frozenset({COOLING_ROOT, *COOLERS}),
        "В сборке отсутствует система охлаждения для процессора",
    ),
)

# Pseudo-component that build-level issues are attributed to
CONFIGURATION_LABEL = "Конфигурация"

CASE_CATEGORY_NAME = "Корпуса"
MOTHERBOARD_CATEGORY_NAME = "Материнские платы"
