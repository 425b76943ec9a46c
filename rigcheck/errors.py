"""Exceptions raised by the compatibility engine and the catalog."""


class RigCheckError(Exception):
    """Base class for every error raised by rigcheck."""


class ResolutionError(RigCheckError, LookupError):
    """A referenced catalog entity does not exist.

    This is bad input, never a compatibility verdict.
    """


class CategoryNotFoundError(ResolutionError):
    def __init__(self, slug):
        self.slug = slug
        super().__init__(f"Категория {slug} не найдена")


class ProductNotFoundError(ResolutionError):
    def __init__(self, slug, category_slug):
        self.slug = slug
        self.category_slug = category_slug
        super().__init__(f"Продукт {slug} не найден в категории {category_slug}")


class BuildNotFoundError(ResolutionError):
    def __init__(self, build_id):
        self.build_id = build_id
        super().__init__(f"Сборка с ID {build_id} не найдена")


class RuleNotFoundError(ResolutionError):
    def __init__(self, rule_id):
        self.rule_id = rule_id
        super().__init__(f"Compatibility rule {rule_id} not found")


class InvalidRuleDocumentError(RigCheckError, ValueError):
    """An import document is not a rules export."""
