"""Shared fixtures: an in-memory catalog seeded from the repository's json/ folder."""

from pathlib import Path

import pytest

from app import create_app
from rigcheck.checker import CompatibilityChecker
from rigcheck.database import CatalogDatabase

SEED_DIR = str(Path(__file__).resolve().parent.parent / "json")

# Product slugs from json/products.json
X370 = ("materinskie-platy", "asus-prime-x370-pro")
B760M = ("materinskie-platy", "msi-pro-b760m-p")
RYZEN = ("processory", "ryzen-5-2600")
I5 = ("processory", "core-i5-13400f")
ZALMAN = ("korpusa", "zalman-s3")
SAMSUNG_M2 = ("ssd-m2-nakopiteli", "samsung-970-evo-plus-500")
WD_HDD = ("zhestkie-diski-35", "wd-blue-1tb")
AK620 = ("kulery-dlya-processorov", "deepcool-ak620")
NH_D15 = ("kulery-dlya-processorov", "noctua-nh-d15")
ARCTIC_240 = ("sistemy-zhidkostnogo-ohlazhdeniya", "arctic-liquid-freezer-ii-240")
DDR4_KIT = ("operativnaya-pamyat", "kingston-fury-beast-2x8-ddr4")
RTX_3060 = ("videokarty", "gigabyte-rtx-3060-eagle")
PSU_600 = ("bloki-pitaniya", "be-quiet-system-power-10-600")


def parts(*pairs):
    """List-form build from (category slug, product slug) pairs."""
    return [{"categorySlug": category_slug, "slug": slug} for category_slug, slug in pairs]


# =============================================================================
# CATALOG FIXTURES
# =============================================================================

@pytest.fixture
def db():
    """Seeded in-memory catalog (13 products, 6 rules, 1 saved build)."""
    database = CatalogDatabase(":memory:")
    database.load_json_folder(SEED_DIR)
    yield database
    database.close()


@pytest.fixture
def checker(db):
    return CompatibilityChecker(db, workers=2)


@pytest.fixture
def compatible_build():
    """Record-form build that passes every check."""
    return dict([X370, RYZEN, DDR4_KIT, SAMSUNG_M2, AK620, ZALMAN, PSU_600])


# =============================================================================
# HTTP FIXTURES
# =============================================================================

@pytest.fixture
def client(db):
    app = create_app(database=db)
    app.config["TESTING"] = True
    return app.test_client()
