from .models import Component


class PartList:
    """
    Represents a single PC build.

    Holds the selected product slug for each category, in the order the
    parts were picked, and converts between the record form
    ({category slug: product slug}) and the component list the checker reads.
    """
    def __init__(self, parts=None):
        """
        :param parts: Optional {category slug: product slug} to start from.
        """
        self.parts = dict(parts or {})

    def add_part(self, category_slug, product_slug):
        """
        Adds or replaces the part of a category.

        :param category_slug: Category of the part (e.g. 'processory').
        :param product_slug: Product slug within that category.
        """
        if not category_slug or not product_slug:
            raise ValueError("Both a category slug and a product slug are required")
        self.parts[category_slug] = product_slug

    def remove_part(self, category_slug):
        """Removes a category's part; returns its product slug or None."""
        return self.parts.pop(category_slug, None)

    def to_components(self):
        return [Component(category_slug, slug) for category_slug, slug in self.parts.items()]

    @classmethod
    def from_components(cls, components):
        part_list = cls()
        for component in components:
            if not isinstance(component, Component):
                component = Component.from_dict(component)
            part_list.add_part(component.category_slug, component.slug)
        return part_list

    def __len__(self):
        return len(self.parts)

    def display(self, result=None):
        """
        Prints a summary of the build to the console, followed by the
        verdict and its issues when a CompatibilityResult is given.
        """
        print("\n--- YOUR CURRENT BUILD ---")
        if not self.parts:
            print("  (empty)")
        for category_slug, slug in self.parts.items():
            print(f"  {category_slug}: {slug}")

        if result is None:
            return
        print("-----------------------------")
        if result.compatible:
            print("All compatible.")
            return
        print("Compatibility issues:")
        for issue in result.issues:
            names = " + ".join(component["title"] for component in issue.components)
            print(f"  - {names}: {issue.reason}")
