import json
import logging
import sqlite3

from flask import Flask, Response, jsonify, request

from rigcheck import config
from rigcheck.checker import CompatibilityChecker
from rigcheck.database import CatalogDatabase
from rigcheck.errors import InvalidRuleDocumentError, ResolutionError
from rigcheck.models import Component

logger = logging.getLogger(__name__)


class InvalidRequest(Exception):
    """Malformed request body; answered with 400."""


def _json_body():
    data = request.get_json(silent=True)
    if data is None:
        raise InvalidRequest("Request body must be JSON")
    return data


def _component_list(items):
    """
    Validates the list form of a build.

    :param items: The 'components' field of a request.
    :return: List of Component.
    """
    if not isinstance(items, list) or not items:
        raise InvalidRequest("'components' must be a non-empty list")
    components = []
    for item in items:
        if not isinstance(item, dict) or not item.get("categorySlug") or not (
                item.get("slug") or item.get("productSlug")):
            raise InvalidRequest("Each component needs 'categorySlug' and 'slug' (or 'productSlug')")
        components.append(Component.from_dict(item))
    return components


def _rule_body():
    data = _json_body()
    if not isinstance(data, dict) or not data.get("name"):
        raise InvalidRequest("A rule needs a 'name'")
    for key in ("categories", "characteristics"):
        if not isinstance(data.get(key, []), list):
            raise InvalidRequest(f"'{key}' must be a list")
    return data


def create_app(database=None):
    """
    Builds the Flask application.

    :param database: CatalogDatabase to serve; opens config.DB_PATH when omitted.
    :return: The Flask app.
    """
    app = Flask(__name__)
    app.config['SECRET_KEY'] = config.SECRET_KEY
    app.json.ensure_ascii = False

    db = database or CatalogDatabase(config.DB_PATH)
    checker = CompatibilityChecker(db)
    app.extensions['rigcheck'] = {'database': db, 'checker': checker}

    @app.errorhandler(ResolutionError)
    def handle_resolution_error(e):
        return jsonify({"error": str(e)}), 404

    @app.errorhandler(InvalidRequest)
    @app.errorhandler(InvalidRuleDocumentError)
    def handle_bad_request(e):
        return jsonify({"error": str(e)}), 400

    @app.errorhandler(sqlite3.IntegrityError)
    def handle_integrity_error(e):
        logger.warning("Rejected write: %s", e)
        return jsonify({"error": f"Invalid reference: {e}"}), 400

    # ------------------------------------------------------------------
    # Compatibility
    # ------------------------------------------------------------------

    @app.route("/api/health")
    def health():
        return jsonify({"status": "ok"})

    @app.route("/api/compatibility/check", methods=["POST"])
    def check_components():
        """
        Checks a build given as a list of {categorySlug, slug}.
        An incompatible build is still a 200; unknown parts are a 404.
        """
        data = _json_body()
        components = _component_list(data.get("components") if isinstance(data, dict) else None)
        return jsonify(checker.check_components(components).to_dict())

    @app.route("/api/compatibility/build", methods=["POST"])
    def check_build():
        """Checks a build given as {categorySlug: productSlug}."""
        data = _json_body()
        record = data.get("components") if isinstance(data, dict) else None
        if not isinstance(record, dict):
            raise InvalidRequest("'components' must be an object of categorySlug -> productSlug")
        return jsonify(checker.check_build(record).to_dict())

    @app.route("/api/compatibility/build/<int:build_id>")
    def check_saved_build(build_id):
        return jsonify(checker.check_saved_build(build_id))

    @app.route("/api/compatibility/advanced", methods=["POST"])
    def check_advanced():
        data = _json_body()
        components = data.get("components") if isinstance(data, dict) else None
        if isinstance(components, dict):
            result = checker.check_advanced_build(components)
        else:
            result = checker.check_advanced(_component_list(components))
        return jsonify(result.to_dict())

    @app.route("/api/compatibility/filter", methods=["POST"])
    def filter_products():
        """
        Products of `categorySlug` that fit the parts in `buildComponents`.
        When nothing fits, every product of the category is returned.
        """
        data = _json_body()
        category_slug = data.get("categorySlug") if isinstance(data, dict) else None
        if not category_slug:
            raise InvalidRequest("'categorySlug' is required")
        build = data.get("buildComponents") or {}
        if not isinstance(build, dict):
            raise InvalidRequest("'buildComponents' must be an object of categorySlug -> productSlug")

        product_ids = checker.find_compatible_products(category_slug, build)
        if not product_ids:
            category = db.find_category_by_slug(category_slug)
            product_ids = [product.id for product in db.find_products_in_category(category.id)]
        return jsonify(db.find_products_by_ids(product_ids))

    @app.route("/api/compatibility/details", methods=["POST"])
    def compatibility_details():
        data = _json_body()
        fields = ("category1Slug", "product1Slug", "category2Slug", "product2Slug")
        if not isinstance(data, dict) or not all(data.get(field) for field in fields):
            raise InvalidRequest(f"Required fields: {', '.join(fields)}")
        return jsonify(checker.check_pair(*(data[field] for field in fields)))

    @app.route("/api/compatibility/details", methods=["GET"])
    def compatibility_details_by_id():
        """Every failing rule comparison between products `primary` and `secondary`, by id."""
        primary = request.args.get("primary", type=int)
        secondary = request.args.get("secondary", type=int)
        if primary is None or secondary is None:
            raise InvalidRequest("Integer query parameters 'primary' and 'secondary' are required")
        return jsonify(db.detailed_compatibility(primary, secondary))

    # ------------------------------------------------------------------
    # Rule administration
    # ------------------------------------------------------------------

    @app.route("/api/admin/compatibility/rules", methods=["GET"])
    def list_rules():
        return jsonify(db.list_rules())

    @app.route("/api/admin/compatibility/rules", methods=["POST"])
    def create_rule():
        rule_id = db.create_rule(_rule_body())
        return jsonify(db.get_rule(rule_id)), 201

    @app.route("/api/admin/compatibility/rules/<int:rule_id>", methods=["GET"])
    def get_rule(rule_id):
        return jsonify(db.get_rule(rule_id))

    @app.route("/api/admin/compatibility/rules/<int:rule_id>", methods=["PUT"])
    def update_rule(rule_id):
        db.update_rule(rule_id, _rule_body())
        return jsonify(db.get_rule(rule_id))

    @app.route("/api/admin/compatibility/rules/<int:rule_id>", methods=["DELETE"])
    def delete_rule(rule_id):
        db.delete_rule(rule_id)
        return jsonify({"success": True})

    @app.route("/api/admin/compatibility/rules/export")
    def export_rules():
        document = db.export_rules()
        return Response(
            json.dumps(document, ensure_ascii=False, indent=2),
            mimetype="application/json",
            headers={"Content-Disposition": "attachment; filename=compatibility-rules.json"},
        )

    @app.route("/api/admin/compatibility/rules/import", methods=["POST"])
    def import_rules():
        """Imports an export document, uploaded as `file` or sent as the body."""
        upload = request.files.get("file")
        if upload is not None:
            try:
                document = json.load(upload.stream)
            except ValueError as e:
                raise InvalidRequest(f"Uploaded file is not valid JSON: {e}") from e
        else:
            document = _json_body()
        return jsonify(db.import_rules(document))

    return app


# --- Application Entry Point ---
if __name__ == "__main__":
    logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    print("Initializing RigCheck engine...")
    app = create_app()
    print("Engine is hot. Server is starting...")
    app.run(host=config.HTTP_HOST, port=config.HTTP_PORT)
