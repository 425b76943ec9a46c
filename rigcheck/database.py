import json
import logging
import os
import sqlite3
import threading
from datetime import datetime, timezone

from . import config
from .errors import BuildNotFoundError, InvalidRuleDocumentError, RuleNotFoundError
from .models import (
    Category, Characteristic, CompatibilityValue, Product, Rule, RuleCharacteristic, RuleLookup
)

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS categories (
    id INTEGER PRIMARY KEY,
    slug TEXT NOT NULL UNIQUE,
    name TEXT NOT NULL,
    parent_id INTEGER REFERENCES categories(id)
);
CREATE TABLE IF NOT EXISTS characteristic_types (
    id INTEGER PRIMARY KEY,
    slug TEXT NOT NULL,
    name TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS products (
    id INTEGER PRIMARY KEY,
    slug TEXT NOT NULL UNIQUE,
    category_id INTEGER NOT NULL REFERENCES categories(id),
    title TEXT NOT NULL,
    price REAL NOT NULL DEFAULT 0,
    brand TEXT NOT NULL DEFAULT ''
);
CREATE TABLE IF NOT EXISTS product_characteristics (
    id INTEGER PRIMARY KEY,
    product_id INTEGER NOT NULL REFERENCES products(id) ON DELETE CASCADE,
    characteristic_type_id INTEGER NOT NULL REFERENCES characteristic_types(id),
    value TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS compatibility_rules (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL,
    description TEXT,
    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);
CREATE TABLE IF NOT EXISTS compatibility_rule_categories (
    id INTEGER PRIMARY KEY,
    rule_id INTEGER NOT NULL REFERENCES compatibility_rules(id) ON DELETE CASCADE,
    primary_category_id INTEGER NOT NULL REFERENCES categories(id) ON DELETE CASCADE,
    secondary_category_id INTEGER NOT NULL REFERENCES categories(id) ON DELETE CASCADE
);
CREATE TABLE IF NOT EXISTS compatibility_rule_characteristics (
    id INTEGER PRIMARY KEY,
    rule_id INTEGER NOT NULL REFERENCES compatibility_rules(id) ON DELETE CASCADE,
    primary_characteristic_id INTEGER NOT NULL REFERENCES characteristic_types(id) ON DELETE CASCADE,
    secondary_characteristic_id INTEGER NOT NULL REFERENCES characteristic_types(id) ON DELETE CASCADE,
    comparison_type TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS compatibility_values (
    id INTEGER PRIMARY KEY,
    rule_characteristic_id INTEGER NOT NULL
        REFERENCES compatibility_rule_characteristics(id) ON DELETE CASCADE,
    primary_value TEXT NOT NULL,
    secondary_value TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS pc_builds (
    id INTEGER PRIMARY KEY,
    slug TEXT NOT NULL UNIQUE,
    name TEXT NOT NULL,
    components TEXT NOT NULL,
    total_price REAL NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);
CREATE INDEX IF NOT EXISTS idx_products_category ON products(category_id);
CREATE INDEX IF NOT EXISTS idx_characteristics_product ON product_characteristics(product_id);
CREATE INDEX IF NOT EXISTS idx_rule_categories_pair
    ON compatibility_rule_categories(primary_category_id, secondary_category_id);
"""

# Every applicable rule characteristic for two products, evaluated in one pass.
DETAILED_COMPATIBILITY_SQL = """
WITH pairs AS (
    SELECT r.id AS rule_id,
           r.name AS rule_name,
           rc.id AS rc_id,
           rc.comparison_type,
           rc.primary_characteristic_id,
           rc.secondary_characteristic_id,
           CASE WHEN crc.primary_category_id = pa.category_id THEN pa.id ELSE pb.id END AS primary_product,
           CASE WHEN crc.primary_category_id = pa.category_id THEN pb.id ELSE pa.id END AS secondary_product
    FROM products pa
    JOIN products pb ON pb.id = :b
    JOIN compatibility_rule_categories crc
      ON (crc.primary_category_id = pa.category_id AND crc.secondary_category_id = pb.category_id)
      OR (crc.primary_category_id = pb.category_id AND crc.secondary_category_id = pa.category_id)
    JOIN compatibility_rules r ON r.id = crc.rule_id
    JOIN compatibility_rule_characteristics rc ON rc.rule_id = r.id
    WHERE pa.id = :a
)
SELECT pairs.rule_id, pairs.rule_name, pairs.comparison_type,
       pt.name AS primary_char, pv.value AS primary_value,
       st.name AS secondary_char, sv.value AS secondary_value,
       CASE pairs.comparison_type
           WHEN 'equality' THEN pv.value = sv.value
           WHEN 'contains' THEN instr(pv.value, sv.value) > 0
           WHEN 'contains_list' THEN instr(',' || replace(pv.value, ' ', '') || ',',
                                           ',' || replace(sv.value, ' ', '') || ',') > 0
           WHEN 'greater_equal' THEN CAST(pv.value AS REAL) >= CAST(sv.value AS REAL)
           WHEN 'count_greater_equal' THEN CAST(pv.value AS INTEGER) >= CAST(sv.value AS INTEGER)
           WHEN 'case_dimensions' THEN CAST(pv.value AS REAL) >= CAST(sv.value AS REAL)
           WHEN 'greater_than' THEN CAST(pv.value AS REAL) > CAST(sv.value AS REAL)
           WHEN 'less_equal' THEN CAST(sv.value AS REAL) <= CAST(pv.value AS REAL)
           WHEN 'divisible' THEN CAST(pv.value AS INTEGER) = 0
                              OR CAST(sv.value AS INTEGER) % CAST(pv.value AS INTEGER) = 0
           ELSE NOT EXISTS (SELECT 1 FROM compatibility_values cv WHERE cv.rule_characteristic_id = pairs.rc_id)
             OR EXISTS (SELECT 1 FROM compatibility_values cv
                        WHERE cv.rule_characteristic_id = pairs.rc_id
                          AND cv.primary_value = pv.value AND cv.secondary_value = sv.value)
       END AS ok
FROM pairs
JOIN product_characteristics pv
  ON pv.product_id = pairs.primary_product AND pv.characteristic_type_id = pairs.primary_characteristic_id
JOIN product_characteristics sv
  ON sv.product_id = pairs.secondary_product AND sv.characteristic_type_id = pairs.secondary_characteristic_id
JOIN characteristic_types pt ON pt.id = pairs.primary_characteristic_id
JOIN characteristic_types st ON st.id = pairs.secondary_characteristic_id
ORDER BY pairs.rule_id, pairs.rc_id
"""

# Seed files, in load order (later tables reference earlier ones)
SEED_TABLES = ("categories", "characteristic_types", "products", "compatibility_rules", "pc_builds")


class CatalogDatabase:
    """
    Read access to the catalog and the compatibility rules, plus the
    writes the admin side needs (rules, saved builds, seeding).

    One SQLite connection is shared by every thread; a lock serializes
    access so component lookups can run on a worker pool.
    """
    def __init__(self, db_path=None):
        """
        Opens (and if needed creates) the database.

        :param db_path: SQLite file path, or ':memory:'. Defaults to config.DB_PATH.
        """
        self.db_path = db_path or config.DB_PATH
        self._lock = threading.RLock()
        logger.info("Opening catalog database at %s", self.db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._conn.executescript(SCHEMA)

    def close(self):
        with self._lock:
            self._conn.close()

    def _query(self, sql, params=()):
        with self._lock:
            return self._conn.execute(sql, params).fetchall()

    def _query_one(self, sql, params=()):
        with self._lock:
            return self._conn.execute(sql, params).fetchone()

    # ------------------------------------------------------------------
    # Catalog reads
    # ------------------------------------------------------------------

    @staticmethod
    def _category(row):
        return Category(row["id"], row["slug"], row["name"], row["parent_id"])

    @staticmethod
    def _product(row):
        return Product(row["id"], row["slug"], row["title"], row["category_id"])

    def find_category_by_slug(self, slug):
        row = self._query_one("SELECT * FROM categories WHERE slug = ?", (slug,))
        return self._category(row) if row else None

    def find_all_categories(self):
        return [self._category(row) for row in self._query("SELECT * FROM categories ORDER BY id")]

    def find_product_by_slug_and_category(self, slug, category_id):
        row = self._query_one(
            "SELECT * FROM products WHERE slug = ? AND category_id = ?", (slug, category_id))
        return self._product(row) if row else None

    def find_products_in_category(self, category_id):
        rows = self._query("SELECT * FROM products WHERE category_id = ? ORDER BY id", (category_id,))
        return [self._product(row) for row in rows]

    def find_products_by_ids(self, product_ids):
        if not product_ids:
            return []
        placeholders = ", ".join("?" for _ in product_ids)
        rows = self._query(
            f"SELECT id, slug, title, price, brand, category_id FROM products "
            f"WHERE id IN ({placeholders}) ORDER BY id",
            tuple(product_ids),
        )
        return [dict(row) for row in rows]

    def find_characteristics_for_product(self, product_id):
        rows = self._query(
            """
            SELECT t.slug AS type_slug, t.name AS type_name, t.id AS type_id, pc.value
            FROM product_characteristics pc
            JOIN characteristic_types t ON t.id = pc.characteristic_type_id
            WHERE pc.product_id = ?
            ORDER BY pc.id
            """,
            (product_id,),
        )
        return [Characteristic(r["type_slug"], r["type_name"], r["type_id"], r["value"]) for r in rows]

    # ------------------------------------------------------------------
    # Rule reads
    # ------------------------------------------------------------------

    def find_compatibility_rules_for_category_pair(self, category_a, category_b):
        """
        Rules declared for the two categories, in either direction.

        Rules declared (a, b) win; only when there are none are the (b, a)
        rules returned, with `swapped` set so the caller can flip roles.

        :param category_a: Category id of the first component.
        :param category_b: Category id of the second component.
        :return: RuleLookup.
        """
        rows = self._query(
            """
            SELECT crc.rule_id, r.name AS rule_name, r.description,
                   crc.primary_category_id = ? AS forward
            FROM compatibility_rule_categories crc
            JOIN compatibility_rules r ON r.id = crc.rule_id
            WHERE (crc.primary_category_id = ? AND crc.secondary_category_id = ?)
               OR (crc.primary_category_id = ? AND crc.secondary_category_id = ?)
            ORDER BY crc.id
            """,
            (category_a, category_a, category_b, category_b, category_a),
        )
        forward = [Rule(r["rule_id"], r["rule_name"], r["description"]) for r in rows if r["forward"]]
        if forward:
            return RuleLookup(tuple(forward), False)
        reverse = [Rule(r["rule_id"], r["rule_name"], r["description"]) for r in rows]
        return RuleLookup(tuple(reverse), bool(reverse))

    def find_rule_characteristics(self, rule_id):
        rows = self._query(
            "SELECT * FROM compatibility_rule_characteristics WHERE rule_id = ? ORDER BY id", (rule_id,))
        return [
            RuleCharacteristic(r["id"], r["primary_characteristic_id"],
                               r["secondary_characteristic_id"], r["comparison_type"])
            for r in rows
        ]

    def find_compatibility_values(self, rule_characteristic_id):
        rows = self._query(
            "SELECT primary_value, secondary_value FROM compatibility_values "
            "WHERE rule_characteristic_id = ? ORDER BY id",
            (rule_characteristic_id,),
        )
        return [CompatibilityValue(r["primary_value"], r["secondary_value"]) for r in rows]

    def detailed_compatibility(self, product_a, product_b):
        """
        Set-based check of every rule that applies to two products.

        Unlike the rule evaluator this reports every failing comparison,
        not just the first one.

        :param product_a: Product id.
        :param product_b: Product id.
        :return: {"compatible": bool, "issues": [...]}.
        """
        issues = []
        for row in self._query(DETAILED_COMPATIBILITY_SQL, {"a": product_a, "b": product_b}):
            if row["ok"]:
                continue
            issues.append({
                "rule_id": row["rule_id"],
                "rule_name": row["rule_name"],
                "message": (f"Несовместимость: {row['primary_char']} ({row['primary_value']}) "
                            f"несовместим с {row['secondary_char']} ({row['secondary_value']})"),
                "primary_char": row["primary_char"],
                "primary_value": row["primary_value"],
                "secondary_char": row["secondary_char"],
                "secondary_value": row["secondary_value"],
                "severity": "error",
            })
        return {"compatible": not issues, "issues": issues}

    # ------------------------------------------------------------------
    # Catalog writes (seeding)
    # ------------------------------------------------------------------

    def add_category(self, slug, name, parent_slug=None, category_id=None):
        with self._lock, self._conn:
            parent_id = None
            if parent_slug:
                parent = self._conn.execute(
                    "SELECT id FROM categories WHERE slug = ?", (parent_slug,)).fetchone()
                if parent is None:
                    raise ValueError(f"Unknown parent category '{parent_slug}'")
                parent_id = parent["id"]
            cursor = self._conn.execute(
                "INSERT INTO categories (id, slug, name, parent_id) VALUES (?, ?, ?, ?)",
                (category_id, slug, name, parent_id),
            )
            return cursor.lastrowid

    def add_characteristic_type(self, slug, name, type_id=None):
        with self._lock, self._conn:
            cursor = self._conn.execute(
                "INSERT INTO characteristic_types (id, slug, name) VALUES (?, ?, ?)", (type_id, slug, name))
            return cursor.lastrowid

    def add_product(self, slug, category_slug, title, characteristics=None, price=0, brand="",
                    product_id=None):
        """
        Adds a product with its characteristics.

        :param characteristics: {characteristic type slug: value}, in display order.
        """
        with self._lock, self._conn:
            category = self._conn.execute(
                "SELECT id FROM categories WHERE slug = ?", (category_slug,)).fetchone()
            if category is None:
                raise ValueError(f"Unknown category '{category_slug}'")
            cursor = self._conn.execute(
                "INSERT INTO products (id, slug, category_id, title, price, brand) VALUES (?, ?, ?, ?, ?, ?)",
                (product_id, slug, category["id"], title, price, brand),
            )
            new_id = cursor.lastrowid
            for type_slug, value in (characteristics or {}).items():
                type_row = self._conn.execute(
                    "SELECT id FROM characteristic_types WHERE slug = ? ORDER BY id", (type_slug,)).fetchone()
                if type_row is None:
                    raise ValueError(f"Unknown characteristic type '{type_slug}'")
                self._conn.execute(
                    "INSERT INTO product_characteristics (product_id, characteristic_type_id, value) "
                    "VALUES (?, ?, ?)",
                    (new_id, type_row["id"], str(value)),
                )
            return new_id

    def load_json_folder(self, json_folder_path):
        """
        Seeds the database from a folder of JSON files, one per table
        (categories.json, characteristic_types.json, products.json,
        compatibility_rules.json in export format, pc_builds.json).

        :param json_folder_path: Path to the folder containing the JSON data.
        :return: {table: number of records loaded}.
        """
        available = {}
        for filename in sorted(os.listdir(json_folder_path)):
            if not filename.endswith(".json"):
                continue
            table = filename[:-len(".json")]
            if table not in SEED_TABLES:
                logger.warning("Skipping %s: not a seed table", filename)
                continue
            with open(os.path.join(json_folder_path, filename), "r", encoding="utf-8") as f:
                available[table] = json.load(f)

        loaded = {}
        for table in SEED_TABLES:
            if table not in available:
                continue
            data = available[table]
            if table == "categories":
                for item in data:
                    self.add_category(item["slug"], item["name"], item.get("parent"), item.get("id"))
            elif table == "characteristic_types":
                for item in data:
                    self.add_characteristic_type(item["slug"], item["name"], item.get("id"))
            elif table == "products":
                for item in data:
                    self.add_product(item["slug"], item["category"], item["title"],
                                     item.get("characteristics"), item.get("price", 0),
                                     item.get("brand", ""), item.get("id"))
            elif table == "compatibility_rules":
                data = self.import_rules(data)["imported"]
            elif table == "pc_builds":
                for item in data:
                    self.save_build(item["name"], item["slug"], item["components"], item.get("totalPrice", 0))
            loaded[table] = data if isinstance(data, int) else len(data)
            logger.info("Loaded %s %s", loaded[table], table)
        return loaded

    # ------------------------------------------------------------------
    # Rule administration
    # ------------------------------------------------------------------

    def _insert_rule_children(self, rule_id, data):
        for category in data.get("categories") or []:
            self._conn.execute(
                "INSERT INTO compatibility_rule_categories (rule_id, primary_category_id, secondary_category_id) "
                "VALUES (?, ?, ?)",
                (rule_id, category["primaryCategoryId"], category["secondaryCategoryId"]),
            )
        for characteristic in data.get("characteristics") or []:
            cursor = self._conn.execute(
                "INSERT INTO compatibility_rule_characteristics "
                "(rule_id, primary_characteristic_id, secondary_characteristic_id, comparison_type) "
                "VALUES (?, ?, ?, ?)",
                (rule_id, characteristic["primaryCharacteristicId"],
                 characteristic["secondaryCharacteristicId"], characteristic["comparisonType"]),
            )
            for value in characteristic.get("values") or []:
                self._conn.execute(
                    "INSERT INTO compatibility_values (rule_characteristic_id, primary_value, secondary_value) "
                    "VALUES (?, ?, ?)",
                    (cursor.lastrowid, value["primaryValue"], value["secondaryValue"]),
                )

    def create_rule(self, data):
        """
        Creates a rule from its export-format dict
        ({name, description, categories, characteristics[].values}).

        :return: The new rule id.
        """
        with self._lock, self._conn:
            cursor = self._conn.execute(
                "INSERT INTO compatibility_rules (name, description) VALUES (?, ?)",
                (data["name"], data.get("description")),
            )
            self._insert_rule_children(cursor.lastrowid, data)
            return cursor.lastrowid

    def update_rule(self, rule_id, data):
        """Replaces a rule's name, description and all of its children."""
        with self._lock, self._conn:
            cursor = self._conn.execute(
                "UPDATE compatibility_rules SET name = ?, description = ?, updated_at = CURRENT_TIMESTAMP "
                "WHERE id = ?",
                (data["name"], data.get("description"), rule_id),
            )
            if cursor.rowcount == 0:
                raise RuleNotFoundError(rule_id)
            self._conn.execute("DELETE FROM compatibility_rule_categories WHERE rule_id = ?", (rule_id,))
            self._conn.execute("DELETE FROM compatibility_rule_characteristics WHERE rule_id = ?", (rule_id,))
            self._insert_rule_children(rule_id, data)

    def delete_rule(self, rule_id):
        with self._lock, self._conn:
            cursor = self._conn.execute("DELETE FROM compatibility_rules WHERE id = ?", (rule_id,))
            if cursor.rowcount == 0:
                raise RuleNotFoundError(rule_id)

    def find_rule_by_name(self, name):
        row = self._query_one("SELECT id FROM compatibility_rules WHERE name = ?", (name,))
        return row["id"] if row else None

    def _rule_document(self, row):
        rule_id = row["id"]
        categories = [
            {
                "id": c["id"],
                "ruleId": rule_id,
                "primaryCategoryId": c["primary_category_id"],
                "secondaryCategoryId": c["secondary_category_id"],
            }
            for c in self._query(
                "SELECT * FROM compatibility_rule_categories WHERE rule_id = ? ORDER BY id", (rule_id,))
        ]
        characteristics = []
        for c in self._query(
                "SELECT * FROM compatibility_rule_characteristics WHERE rule_id = ? ORDER BY id", (rule_id,)):
            values = [
                {
                    "id": v["id"],
                    "ruleCharacteristicId": c["id"],
                    "primaryValue": v["primary_value"],
                    "secondaryValue": v["secondary_value"],
                }
                for v in self._query(
                    "SELECT * FROM compatibility_values WHERE rule_characteristic_id = ? ORDER BY id", (c["id"],))
            ]
            characteristics.append({
                "id": c["id"],
                "ruleId": rule_id,
                "primaryCharacteristicId": c["primary_characteristic_id"],
                "secondaryCharacteristicId": c["secondary_characteristic_id"],
                "comparisonType": c["comparison_type"],
                "values": values,
            })
        return {
            "id": rule_id,
            "name": row["name"],
            "description": row["description"],
            "createdAt": row["created_at"],
            "updatedAt": row["updated_at"],
            "categories": categories,
            "characteristics": characteristics,
        }

    def get_rule(self, rule_id):
        row = self._query_one("SELECT * FROM compatibility_rules WHERE id = ?", (rule_id,))
        if row is None:
            raise RuleNotFoundError(rule_id)
        return self._rule_document(row)

    def list_rules(self):
        return [self._rule_document(row) for row in self._query("SELECT * FROM compatibility_rules ORDER BY id")]

    def export_rules(self):
        return {
            "version": config.RULES_EXPORT_VERSION,
            "exportDate": datetime.now(timezone.utc).isoformat(),
            "rules": self.list_rules(),
        }

    def import_rules(self, document):
        """
        Imports an export document. Rules whose name already exists are
        skipped, as is any rule that cannot be inserted (its partial
        writes are rolled back).

        :param document: Parsed export document.
        :return: {"imported": n, "skipped": m}.
        """
        if not isinstance(document, dict) or not isinstance(document.get("rules"), list):
            raise InvalidRuleDocumentError("Invalid file format: expected an object with a 'rules' list")

        imported = skipped = 0
        for rule in document["rules"]:
            name = rule.get("name") if isinstance(rule, dict) else None
            if not name or self.find_rule_by_name(name) is not None:
                skipped += 1
                continue
            try:
                self.create_rule(rule)
            except (sqlite3.Error, KeyError, TypeError) as e:
                logger.error("Error importing rule %s: %s", name, e)
                skipped += 1
                continue
            imported += 1
        logger.info("Rule import finished: %d imported, %d skipped", imported, skipped)
        return {"imported": imported, "skipped": skipped}

    # ------------------------------------------------------------------
    # Saved builds
    # ------------------------------------------------------------------

    def save_build(self, name, slug, components, total_price=0):
        """
        :param components: {category slug: product slug}.
        :return: The build id.
        """
        with self._lock, self._conn:
            cursor = self._conn.execute(
                "INSERT INTO pc_builds (slug, name, components, total_price) VALUES (?, ?, ?, ?)",
                (slug, name, json.dumps(dict(components), ensure_ascii=False), total_price),
            )
            return cursor.lastrowid

    def find_build(self, build_id):
        row = self._query_one("SELECT * FROM pc_builds WHERE id = ?", (build_id,))
        if row is None:
            raise BuildNotFoundError(build_id)
        return {
            "id": row["id"],
            "slug": row["slug"],
            "name": row["name"],
            "components": json.loads(row["components"]),
            "totalPrice": row["total_price"],
        }
