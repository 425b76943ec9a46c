import argparse
import json
import logging
import sys

import requests

from rigcheck import config
from rigcheck.checker import CompatibilityChecker
from rigcheck.database import CatalogDatabase
from rigcheck.errors import RigCheckError, ResolutionError
from rigcheck.models import CompatibilityResult, Issue
from rigcheck.partlist import PartList

EXIT_COMPATIBLE = 0
EXIT_INCOMPATIBLE = 1
EXIT_ERROR = 2


def parse_part(argument):
    """
    Parses a CATEGORY=PRODUCT command-line argument.

    :param argument: e.g. 'processory=ryzen-5-2600'.
    :return: (category slug, product slug).
    """
    category_slug, sep, product_slug = argument.partition("=")
    if not sep or not category_slug.strip() or not product_slug.strip():
        raise argparse.ArgumentTypeError(f"Expected CATEGORY=PRODUCT, got '{argument}'")
    return category_slug.strip(), product_slug.strip()


class RigCheckApp:
    """
    Command-line front end for the compatibility engine.

    Works against a local SQLite catalog, or, with a server URL, against
    a running RigCheck API.
    """
    def __init__(self, db_path=None, server_url=None):
        """
        :param db_path: Local catalog path (ignored in remote mode).
        :param server_url: Base URL of a RigCheck server, e.g. http://127.0.0.1:10000.
        """
        self.server_url = server_url.rstrip("/") if server_url else None
        self._db_path = db_path or config.DB_PATH
        self._db = None
        self._checker = None

    @property
    def db(self):
        if self._db is None:
            self._db = CatalogDatabase(self._db_path)
        return self._db

    @property
    def checker(self):
        if self._checker is None:
            self._checker = CompatibilityChecker(self.db)
        return self._checker

    def _post(self, path, payload):
        """
        Calls the remote API. Resolution errors come back as 404.

        :raises ResolutionError: The server could not find a part.
        """
        response = requests.post(f"{self.server_url}{path}", json=payload, timeout=config.REQUEST_TIMEOUT)
        if response.status_code == 404:
            raise ResolutionError(response.json().get("error", "Not found"))
        response.raise_for_status()
        return response.json()

    @staticmethod
    def _result_from_json(data):
        issues = [Issue(issue["components"], issue["reason"]) for issue in data.get("issues", [])]
        return CompatibilityResult(data["compatible"], issues)

    def check(self, parts):
        """
        Checks a build and prints the verdict.

        :param parts: List of (category slug, product slug).
        :return: Exit status.
        """
        part_list = PartList()
        for category_slug, product_slug in parts:
            part_list.add_part(category_slug, product_slug)

        if self.server_url:
            data = self._post("/api/compatibility/build", {"components": part_list.parts})
            result = self._result_from_json(data)
        else:
            result = self.checker.check_build(part_list)

        part_list.display(result)
        return EXIT_COMPATIBLE if result.compatible else EXIT_INCOMPATIBLE

    def check_saved_build(self, build_id):
        if self.server_url:
            response = requests.get(f"{self.server_url}/api/compatibility/build/{build_id}",
                                    timeout=config.REQUEST_TIMEOUT)
            if response.status_code == 404:
                raise ResolutionError(response.json().get("error", "Not found"))
            response.raise_for_status()
            report = response.json()
        else:
            report = self.checker.check_saved_build(build_id)

        print(f"\n--- BUILD #{build_id} ---")
        for pair in report["results"]:
            mark = "OK " if pair["compatible"] else "BAD"
            print(f"  [{mark}] {pair['primary_product']['title']} + {pair['secondary_product']['title']}")
            for issue in pair["issues"]:
                print(f"        {issue['message']}")
        print("All compatible." if report["compatible"] else "Build has compatibility issues.")
        return EXIT_COMPATIBLE if report["compatible"] else EXIT_INCOMPATIBLE

    def seed(self, folder):
        loaded = self.db.load_json_folder(folder)
        for table, count in loaded.items():
            print(f"  {table}: {count}")
        print("✅ Catalog seeded.")
        return EXIT_COMPATIBLE

    def export_rules(self, path):
        document = self.db.export_rules()
        with open(path, "w", encoding="utf-8") as f:
            json.dump(document, f, ensure_ascii=False, indent=2)
        print(f"Exported {len(document['rules'])} rules to {path}")
        return EXIT_COMPATIBLE

    def import_rules(self, path):
        with open(path, "r", encoding="utf-8") as f:
            document = json.load(f)
        summary = self.db.import_rules(document)
        print(f"Imported {summary['imported']} rules, skipped {summary['skipped']}")
        return EXIT_COMPATIBLE


def build_parser():
    parser = argparse.ArgumentParser(prog="rigcheck", description="PC build compatibility checker")
    parser.add_argument("--db", default=config.DB_PATH, help="SQLite catalog path")
    parser.add_argument("--server", metavar="URL", default=None,
                        help=f"Check against a running server (e.g. {config.DEFAULT_SERVER_URL}) "
                             "instead of the local catalog")
    parser.add_argument("--log-level", default=config.LOG_LEVEL)
    commands = parser.add_subparsers(dest="command", required=True)

    check = commands.add_parser("check", help="Check a build given as CATEGORY=PRODUCT pairs")
    check.add_argument("parts", nargs="+", type=parse_part, metavar="CATEGORY=PRODUCT")

    build = commands.add_parser("build", help="Check a saved build")
    build.add_argument("build_id", type=int)

    seed = commands.add_parser("seed", help="Load a folder of JSON seed files")
    seed.add_argument("folder", nargs="?", default=config.JSON_PATH)

    export = commands.add_parser("export-rules", help="Write the compatibility rules to a file")
    export.add_argument("path")

    import_ = commands.add_parser("import-rules", help="Import compatibility rules from a file")
    import_.add_argument("path")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")
    app = RigCheckApp(db_path=args.db, server_url=args.server)

    try:
        if args.command == "check":
            return app.check(args.parts)
        if args.command == "build":
            return app.check_saved_build(args.build_id)
        if args.command == "seed":
            return app.seed(args.folder)
        if args.command == "export-rules":
            return app.export_rules(args.path)
        return app.import_rules(args.path)
    except RigCheckError as e:
        print(f"❌ {e}")
        return EXIT_ERROR
    except requests.RequestException as e:
        print(f"❌ Server request failed: {e}")
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
