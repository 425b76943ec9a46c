"""
Evaluation of the admin-configured compatibility rules.

A rule names two categories; each of its rule characteristics names one
characteristic type on each side plus a comparison. A characteristic that
either product lacks is skipped, so a half-filled catalog entry never
blocks a build. The first failing comparison decides the pair.
"""

import logging
from enum import Enum

from .categories import CASE_CATEGORY_NAME, MOTHERBOARD_CATEGORY_NAME
from .checkers import COMPATIBLE, CheckResult
from .normalize import parse_float, parse_int

logger = logging.getLogger(__name__)


class ComparisonType(str, Enum):
    EQUALITY = "equality"
    CONTAINS = "contains"
    CONTAINS_LIST = "contains_list"
    GREATER_EQUAL = "greater_equal"
    GREATER_THAN = "greater_than"
    DIVISIBLE = "divisible"
    COUNT_GREATER_EQUAL = "count_greater_equal"
    LESS_EQUAL = "less_equal"
    CASE_DIMENSIONS = "case_dimensions"
    # Anything else is checked against the explicit value whitelist
    VALUE_LOOKUP = "compatible_values"


def comparison_type_of(tag):
    try:
        return ComparisonType(tag)
    except ValueError:
        return ComparisonType.VALUE_LOOKUP


def _incompatible(text):
    return CheckResult(False, f"Несовместимость: {text}")


def _numbers(parse, primary, secondary):
    """Both values parsed, or None when either is not a number."""
    left, right = parse(primary.value), parse(secondary.value)
    if left is None or right is None:
        logger.debug("Cannot compare %r with %r numerically, skipping", primary.value, secondary.value)
        return None
    return left, right


def compare(comparison, primary, secondary, primary_component=None, secondary_component=None,
            values=None):
    """
    Runs one comparison between two characteristic values.

    :param comparison: ComparisonType.
    :param primary: Characteristic of the rule's primary side.
    :param secondary: Characteristic of the rule's secondary side.
    :param primary_component: ResolvedComponent owning `primary` (used in messages).
    :param secondary_component: ResolvedComponent owning `secondary`.
    :param values: Callable returning the CompatibilityValue whitelist;
        only called for VALUE_LOOKUP.
    :return: CheckResult.
    """
    p, s = primary, secondary

    if comparison is ComparisonType.EQUALITY:
        if p.value != s.value:
            return _incompatible(f"{p.type_name} ({p.value}) не совпадает с {s.type_name} ({s.value})")

    elif comparison is ComparisonType.CONTAINS:
        if s.value not in p.value:
            return _incompatible(f"{p.type_name} ({p.value}) не поддерживает {s.type_name} ({s.value})")

    elif comparison is ComparisonType.CONTAINS_LIST:
        supported = [item.strip() for item in p.value.split(",")]
        if s.value not in supported:
            return _incompatible(f"{p.type_name} ({p.value}) не поддерживает сокет {s.type_name} ({s.value})")

    elif comparison is ComparisonType.GREATER_EQUAL:
        numbers = _numbers(parse_float, p, s)
        if numbers and numbers[0] < numbers[1]:
            return _incompatible(
                f"{p.type_name} ({p.value}) меньше необходимого значения {s.type_name} ({s.value})")

    elif comparison is ComparisonType.GREATER_THAN:
        numbers = _numbers(parse_float, p, s)
        if numbers and numbers[0] <= numbers[1]:
            return _incompatible(f"{p.type_name} ({p.value}) должно быть больше {s.type_name} ({s.value})")

    elif comparison is ComparisonType.DIVISIBLE:
        # primary is the channel count, secondary the module count
        numbers = _numbers(parse_int, p, s)
        if numbers and numbers[0] != 0 and numbers[1] % numbers[0] != 0:
            channels, modules = numbers
            return _incompatible(
                f"Количество модулей памяти ({modules}) не оптимально для {channels} каналов памяти")

    elif comparison is ComparisonType.COUNT_GREATER_EQUAL:
        numbers = _numbers(parse_int, p, s)
        if numbers and numbers[0] < numbers[1]:
            available, required = numbers
            return _incompatible(
                f"Недостаточно {p.type_name} ({available}) для подключения {s.type_name} (требуется {required})")

    elif comparison is ComparisonType.LESS_EQUAL:
        # primary is the maximum allowed, secondary the installed part
        numbers = _numbers(parse_float, p, s)
        if numbers and numbers[1] > numbers[0]:
            if (primary_component is not None and secondary_component is not None
                    and primary_component.category_name == CASE_CATEGORY_NAME
                    and secondary_component.category_name == MOTHERBOARD_CATEGORY_NAME):
                return _incompatible(f"Корпус ({p.value}) слишком мал для материнской платы ({s.value})")
            return _incompatible(
                f"{s.type_name} ({s.value}) превышает максимально допустимое значение {p.type_name} ({p.value})")

    elif comparison is ComparisonType.CASE_DIMENSIONS:
        numbers = _numbers(parse_float, p, s)
        if numbers and numbers[0] < numbers[1]:
            return _incompatible(
                f'Материнская плата со значением "{s.type_name}" ({s.value} мм) слишком большая '
                f'и не помещается в корпус с "{p.type_name}" ({p.value} мм)')

    else:
        whitelist = list(values()) if values is not None else []
        if not whitelist:
            logger.debug("No value whitelist configured, nothing to enforce")
            return COMPATIBLE
        if not any(v.primary_value == p.value and v.secondary_value == s.value for v in whitelist):
            return _incompatible(f"{p.type_name} ({p.value}) несовместим с {s.type_name} ({s.value})")

    return COMPATIBLE


def evaluate_rule_characteristic(rule_characteristic, primary_component, secondary_component, database):
    """
    Evaluates a single rule characteristic against a component pair.

    :param rule_characteristic: RuleCharacteristic.
    :param primary_component: Component playing the rule's primary category.
    :param secondary_component: Component playing the rule's secondary category.
    :param database: Catalog used to load the value whitelist on demand.
    :return: CheckResult (COMPATIBLE when either characteristic is missing).
    """
    primary = primary_component.by_type_id(rule_characteristic.primary_characteristic_id)
    secondary = secondary_component.by_type_id(rule_characteristic.secondary_characteristic_id)
    if primary is None or secondary is None:
        logger.debug("Rule characteristic #%s skipped: characteristic missing", rule_characteristic.id)
        return COMPATIBLE

    return compare(
        comparison_type_of(rule_characteristic.comparison_type),
        primary,
        secondary,
        primary_component,
        secondary_component,
        values=lambda: database.find_compatibility_values(rule_characteristic.id),
    )


def evaluate_rules(rules, primary_component, secondary_component, database):
    """
    Evaluates every rule for a category pair, stopping at the first failure.

    :param rules: Rules found for the pair (already oriented primary/secondary).
    :param primary_component: ResolvedComponent of the primary category.
    :param secondary_component: ResolvedComponent of the secondary category.
    :param database: CatalogDatabase.
    :return: CheckResult carrying the first failing reason.
    """
    for rule in rules:
        for rule_characteristic in database.find_rule_characteristics(rule.rule_id):
            logger.debug("Rule #%s: %s", rule.rule_id, rule_characteristic.comparison_type)
            result = evaluate_rule_characteristic(
                rule_characteristic, primary_component, secondary_component, database)
            if not result.compatible:
                logger.info("Incompatible by rule '%s': %s", rule.rule_name, result.reason)
                return result
    return COMPATIBLE
