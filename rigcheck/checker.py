import logging
from concurrent.futures import ThreadPoolExecutor
from itertools import combinations

from . import config
from .categories import (
    CASE, CONFIGURATION_LABEL, COOLER_TYPE_AIR, COOLER_TYPE_LIQUID, COOLERS, CPU,
    HEIGHT, LIQUID_COOLER, M2_SLOTS, MAX_COOLER_HEIGHT, MOTHERBOARD, NVME_SUPPORT, RADIATOR_MOUNTS,
    RADIATOR_SIZE, REQUIRED_GROUPS, SATA_PORTS, SOCKET, STORAGE_DEVICES, STORAGE_INTERFACE,
    STORAGE_TYPE, TDP, TDP_RATING
)
from .checkers import (
    COMPATIBLE, check_cooler_clearance, check_cooling_compatibility, check_storage_compatibility
)
from .errors import CategoryNotFoundError, ProductNotFoundError, ResolutionError
from .models import CompatibilityResult, Component, Issue, PairResult, ResolvedComponent
from .partlist import PartList
from .rules import evaluate_rules

logger = logging.getLogger(__name__)

DEFAULT_REASON = "Несовместимые компоненты"

# (category slug, category slug) -> handler(first, second, build).
# `first` always belongs to the first slug of the registration.
SPECIAL_CASES = {}


def special_case(first_slugs, second_slugs):
    """
    Registers a specialized check for every pairing of the given slugs.
    The pair is matched in either order.
    """
    def register(handler):
        for a in first_slugs:
            for b in second_slugs:
                SPECIAL_CASES[frozenset((a, b))] = (a, handler)
        return handler
    return register


def _cooler_type(cooling):
    return COOLER_TYPE_LIQUID if cooling.category_slug == LIQUID_COOLER else COOLER_TYPE_AIR


@special_case((MOTHERBOARD,), STORAGE_DEVICES)
def _storage_on_motherboard(motherboard, storage, build):
    return check_storage_compatibility(
        storage.value_of(STORAGE_TYPE),
        storage.value_of(STORAGE_INTERFACE),
        motherboard.value_of(NVME_SUPPORT),
        motherboard.value_of(M2_SLOTS, default="0"),
        motherboard.value_of(SATA_PORTS, default="0"),
    )


@special_case((CPU,), COOLERS)
def _cooling_on_cpu(cpu, cooling, build):
    case = next((component for component in build if component.category_slug == CASE), None)
    return check_cooling_compatibility(
        _cooler_type(cooling),
        cooling.value_of(SOCKET),
        cooling.value_of(TDP_RATING),
        cooling.value_of(HEIGHT, RADIATOR_SIZE),
        cpu.value_of(SOCKET),
        cpu.value_of(TDP),
        case.value_of(MAX_COOLER_HEIGHT) if case else "",
        case.value_of(*RADIATOR_MOUNTS) if case else "",
    )


@special_case((CASE,), COOLERS)
def _cooling_in_case(case, cooling, build):
    cooler_type = _cooler_type(cooling)
    size = cooling.value_of(HEIGHT if cooler_type == COOLER_TYPE_AIR else RADIATOR_SIZE)
    return check_cooler_clearance(
        cooler_type, size, case.value_of(MAX_COOLER_HEIGHT), case.value_of(*RADIATOR_MOUNTS))


def as_components(build):
    """
    Converts any accepted build shape into a list of Components.

    :param build: A PartList, a {category slug: product slug} record, or a
        list of Components / {categorySlug, slug} dicts.
    :return: List of Component.
    """
    if isinstance(build, PartList):
        return build.to_components()
    if isinstance(build, dict):
        return [Component(category_slug, slug) for category_slug, slug in build.items()]
    return [item if isinstance(item, Component) else Component.from_dict(item) for item in build]


class CompatibilityChecker:
    """
    Cross-checks every pair of parts in a build.

    Each pair first goes through the specialized check registered for its
    two categories, if any; the declarative rules stored in the catalog run
    only when that check passed.
    """
    def __init__(self, database, workers=None):
        """
        :param database: CatalogDatabase the parts and rules are read from.
        :param workers: Thread pool size for component resolution.
        """
        self.database = database
        self.workers = workers or config.RESOLVE_WORKERS
        logger.debug("Compatibility checker ready (%d resolve workers)", self.workers)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve(self, component):
        """
        Loads a component's product and characteristics.

        :raises CategoryNotFoundError: Unknown category slug.
        :raises ProductNotFoundError: No such product in that category.
        """
        category = self.database.find_category_by_slug(component.category_slug)
        if category is None:
            raise CategoryNotFoundError(component.category_slug)
        product = self.database.find_product_by_slug_and_category(component.slug, category.id)
        if product is None:
            raise ProductNotFoundError(component.slug, component.category_slug)
        return ResolvedComponent(
            id=product.id,
            category_slug=component.category_slug,
            product_slug=product.slug,
            title=product.title,
            category_id=category.id,
            category_name=category.name,
            characteristics=self.database.find_characteristics_for_product(product.id),
        )

    def resolve_all(self, components):
        """Resolves components concurrently; the result keeps input order."""
        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            return list(pool.map(self.resolve, components))

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    def missing_groups(self, components):
        """
        Issues for every mandatory part group the build lacks.

        A component satisfies a group through its own category slug or its
        parent category's slug.
        """
        categories = self.database.find_all_categories()
        slugs_by_id = {category.id: category.slug for category in categories}
        parent_of = {
            category.slug: slugs_by_id.get(category.parent_id)
            for category in categories if category.parent_id is not None
        }

        satisfied = set()
        for component in components:
            candidates = {component.category_slug, parent_of.get(component.category_slug)}
            for group in REQUIRED_GROUPS:
                if candidates & group.slugs:
                    satisfied.add(group.name)

        configuration = {"id": 0, "title": CONFIGURATION_LABEL, "category": CONFIGURATION_LABEL}
        return [
            Issue([configuration], group.message)
            for group in REQUIRED_GROUPS if group.name not in satisfied
        ]

    def special_check(self, first, second, build):
        """
        Runs the specialized check registered for the pair's categories.

        :return: CheckResult, COMPATIBLE when no check is registered.
        """
        entry = SPECIAL_CASES.get(frozenset((first.category_slug, second.category_slug)))
        if entry is None:
            return COMPATIBLE
        slug, handler = entry
        if first.category_slug != slug:
            first, second = second, first
        logger.debug("Specialized check %s for %s / %s", handler.__name__, first.title, second.title)
        return handler(first, second, build)

    def check_pair_rules(self, first, second, build):
        """
        Verdict for one pair of resolved components.

        :return: (source, target, CheckResult); source plays the primary
            category of the rules found for the pair.
        """
        lookup = self.database.find_compatibility_rules_for_category_pair(first.category_id, second.category_id)
        if lookup.swapped:
            first, second = second, first

        result = self.special_check(first, second, build)
        if result.compatible and lookup.rules:
            logger.debug("%d rules for %s / %s", len(lookup.rules), first.category_name, second.category_name)
            result = evaluate_rules(lookup.rules, first, second, self.database)
        return first, second, result

    def check_components(self, components):
        """
        Checks every pair of parts in a build.

        :param components: List of Component or {categorySlug, slug} dicts.
        :return: CompatibilityResult.
        :raises ResolutionError: A category or product does not exist.
        """
        components = as_components(components)
        if len(components) < 2:
            return CompatibilityResult()

        issues = self.missing_groups(components)
        resolved = self.resolve_all(components)

        pairs = []
        for a, b in combinations(resolved, 2):
            source, target, result = self.check_pair_rules(a, b, resolved)
            pairs.append(PairResult(source, target, result.compatible, result.reason))
            if not result.compatible:
                issues.append(Issue([source.summary(), target.summary()], result.reason or DEFAULT_REASON))

        logger.info("Checked %d components: %d pairs, %d issues", len(resolved), len(pairs), len(issues))
        return CompatibilityResult(not issues, issues, pairs)

    def check_build(self, build):
        """
        Record form of check_components.

        :param build: A PartList or a {category slug: product slug} dict.
        """
        return self.check_components(as_components(build))

    # ------------------------------------------------------------------
    # Set-based path
    # ------------------------------------------------------------------

    def check_advanced(self, components):
        """
        Same contract as check_components, but each pair is judged by the
        database's set-based rule evaluation. No mandatory groups and no
        specialized checks on this path.
        """
        components = as_components(components)
        if len(components) < 2:
            return CompatibilityResult()

        resolved = self.resolve_all(components)
        issues, pairs = [], []
        for source, target in combinations(resolved, 2):
            detail = self.database.detailed_compatibility(source.id, target.id)
            reason = None
            if not detail["compatible"]:
                first = detail["issues"][0]
                reason = first.get("message") or (
                    f"{first['primary_char']} ({first['primary_value']}) несовместим с "
                    f"{first['secondary_char']} ({first['secondary_value']})")
                issues.append(Issue([source.summary(), target.summary()], reason))
            pairs.append(PairResult(source, target, detail["compatible"], reason))
        return CompatibilityResult(not issues, issues, pairs)

    def check_advanced_build(self, build):
        return self.check_advanced(as_components(build))

    # ------------------------------------------------------------------
    # Helpers for the storefront
    # ------------------------------------------------------------------

    def check_saved_build(self, build_id):
        """
        Checks a stored build and reports it per pair.

        :param build_id: pc_builds id.
        :return: {"compatible", "results": [...]}.
        :raises BuildNotFoundError: No build with that id.
        """
        build = self.database.find_build(build_id)
        result = self.check_build(build["components"])

        def product(component):
            return {
                "id": component.id,
                "title": component.title,
                "category_id": 0,
                "category_name": component.category_name,
            }

        results = []
        for pair in result.component_pairs:
            issues = []
            if not pair.compatible:
                issues.append({
                    "rule_id": 0,
                    "rule_name": "",
                    "message": pair.reason or DEFAULT_REASON,
                    "severity": "error",
                })
            results.append({
                "compatible": pair.compatible,
                "issues": issues,
                "primary_product": product(pair.source),
                "secondary_product": product(pair.target),
            })
        return {"compatible": result.compatible, "results": results}

    def find_compatible_products(self, category_slug, build=None):
        """
        Products of a category that fit with every part already chosen.

        Parts of the build that cannot be resolved are ignored.

        :param category_slug: Category to pick from.
        :param build: {category slug: product slug} of the chosen parts.
        :return: List of product ids.
        :raises CategoryNotFoundError: Unknown category_slug.
        """
        category = self.database.find_category_by_slug(category_slug)
        if category is None:
            raise CategoryNotFoundError(category_slug)
        products = self.database.find_products_in_category(category.id)

        selected = []
        for component in as_components(build or {}):
            try:
                selected.append(self.resolve(component))
            except ResolutionError as e:
                logger.warning("Ignoring build component: %s", e)

        return [
            product.id for product in products
            if all(self.database.detailed_compatibility(product.id, part.id)["compatible"] for part in selected)
        ]

    def check_pair(self, category_a, product_a, category_b, product_b):
        """Set-based compatibility of two products, with every failing rule listed."""
        first = self.resolve(Component(category_a, product_a))
        second = self.resolve(Component(category_b, product_b))
        return self.database.detailed_compatibility(first.id, second.id)
