"""Typed rows handed out by the catalog and the result shapes of a check."""

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class Component:
    """A selected part, referenced by (category slug, product slug)."""
    category_slug: str
    slug: str

    @classmethod
    def from_dict(cls, data):
        """Accepts {categorySlug, slug} or {categorySlug, productSlug}."""
        return cls(data["categorySlug"], data.get("slug") or data["productSlug"])

    def to_dict(self):
        return {"categorySlug": self.category_slug, "slug": self.slug}


@dataclass(frozen=True)
class Category:
    id: int
    slug: str
    name: str
    parent_id: Optional[int] = None


@dataclass(frozen=True)
class Product:
    id: int
    slug: str
    title: str
    category_id: int


@dataclass(frozen=True)
class Characteristic:
    type_slug: str
    type_name: str
    type_id: int
    value: str


@dataclass(frozen=True)
class Rule:
    rule_id: int
    rule_name: str
    description: Optional[str] = None


@dataclass(frozen=True)
class RuleCharacteristic:
    id: int
    primary_characteristic_id: int
    secondary_characteristic_id: int
    comparison_type: str


@dataclass(frozen=True)
class CompatibilityValue:
    primary_value: str
    secondary_value: str


@dataclass(frozen=True)
class RuleLookup:
    """Rules for a category pair; `swapped` means they were declared (b, a)."""
    rules: tuple = ()
    swapped: bool = False


@dataclass
class ResolvedComponent:
    """A Component after its product and characteristics were loaded."""
    id: int
    category_slug: str
    product_slug: str
    title: str
    category_id: int
    category_name: str
    characteristics: list = field(default_factory=list)

    def value_of(self, *type_slugs, default=""):
        """Value of the first characteristic whose slug is one of type_slugs."""
        for characteristic in self.characteristics:
            if characteristic.type_slug in type_slugs:
                return characteristic.value
        return default

    def by_type_id(self, type_id):
        for characteristic in self.characteristics:
            if characteristic.type_id == type_id:
                return characteristic
        return None

    def node(self):
        return {
            "id": self.id,
            "categorySlug": self.category_slug,
            "productSlug": self.product_slug,
            "title": self.title,
            "categoryName": self.category_name,
        }

    def summary(self):
        return {"id": self.id, "title": self.title, "category": self.category_name}


@dataclass
class PairResult:
    source: ResolvedComponent
    target: ResolvedComponent
    compatible: bool
    reason: Optional[str] = None

    def to_dict(self):
        return {
            "source": self.source.node(),
            "target": self.target.node(),
            "compatible": self.compatible,
            "reason": self.reason or None,
        }


@dataclass
class Issue:
    components: list
    reason: str

    def to_dict(self):
        return {"components": list(self.components), "reason": self.reason}


@dataclass
class CompatibilityResult:
    compatible: bool = True
    issues: list = field(default_factory=list)
    component_pairs: list = field(default_factory=list)

    def to_dict(self):
        return {
            "compatible": self.compatible,
            "issues": [issue.to_dict() for issue in self.issues],
            "componentPairs": [pair.to_dict() for pair in self.component_pairs],
        }
