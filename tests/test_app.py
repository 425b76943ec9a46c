"""Tests for the Flask API."""

import io
import json

from conftest import I5, RYZEN, X370, parts


class TestCompatibilityEndpoints:
    """Tests for /api/compatibility/*."""

    def test_health(self, client):
        assert client.get("/api/health").get_json() == {"status": "ok"}

    def test_check_compatible_build(self, client, compatible_build):
        response = client.post("/api/compatibility/check", json={"components": parts(*compatible_build.items())})
        assert response.status_code == 200
        body = response.get_json()
        assert body["compatible"] is True
        assert len(body["componentPairs"]) == 21

    def test_product_slug_alias(self, client):
        components = [{"categorySlug": X370[0], "productSlug": X370[1]},
                      {"categorySlug": I5[0], "productSlug": I5[1]}]
        body = client.post("/api/compatibility/check", json={"components": components}).get_json()
        assert body["compatible"] is False

    def test_incompatible_is_still_200(self, client):
        response = client.post("/api/compatibility/check", json={"components": parts(X370, I5)})
        assert response.status_code == 200
        assert response.get_json()["compatible"] is False

    def test_missing_components(self, client):
        assert client.post("/api/compatibility/check", json={}).status_code == 400
        assert client.post("/api/compatibility/check", json={"components": []}).status_code == 400
        assert client.post("/api/compatibility/check", json={"components": [{"slug": "x"}]}).status_code == 400

    def test_unknown_product_is_404(self, client):
        response = client.post("/api/compatibility/check",
                               json={"components": parts(X370, ("processory", "pentium-4"))})
        assert response.status_code == 404
        assert "pentium-4" in response.get_json()["error"]

    def test_record_form(self, client, compatible_build):
        response = client.post("/api/compatibility/build", json={"components": compatible_build})
        assert response.get_json()["compatible"] is True
        assert client.post("/api/compatibility/build", json={"components": []}).status_code == 400

    def test_saved_build(self, client):
        assert client.get("/api/compatibility/build/1").get_json()["compatible"] is True
        assert client.get("/api/compatibility/build/99").status_code == 404

    def test_advanced_accepts_both_forms(self, client):
        as_list = client.post("/api/compatibility/advanced", json={"components": parts(X370, I5)}).get_json()
        as_record = client.post("/api/compatibility/advanced", json={"components": dict([X370, I5])}).get_json()
        assert as_list == as_record
        assert as_list["compatible"] is False

    def test_filter(self, client):
        response = client.post("/api/compatibility/filter",
                               json={"categorySlug": "processory", "buildComponents": dict([X370])})
        assert [p["slug"] for p in response.get_json()] == ["ryzen-5-2600"]

    def test_filter_falls_back_to_whole_category(self, client, db):
        db.add_product("am5-board", "materinskie-platy", "AM5 Board", {"socket": "AM5"})
        response = client.post("/api/compatibility/filter",
                               json={"categorySlug": "processory",
                                     "buildComponents": {"materinskie-platy": "am5-board"}})
        assert [p["slug"] for p in response.get_json()] == ["ryzen-5-2600", "core-i5-13400f"]

    def test_filter_unknown_category(self, client):
        response = client.post("/api/compatibility/filter", json={"categorySlug": "nope"})
        assert response.status_code == 404

    def test_details(self, client):
        payload = {"category1Slug": X370[0], "product1Slug": X370[1],
                   "category2Slug": RYZEN[0], "product2Slug": RYZEN[1]}
        assert client.post("/api/compatibility/details", json=payload).get_json() == {
            "compatible": True, "issues": []}
        assert client.post("/api/compatibility/details", json={"category1Slug": "x"}).status_code == 400

    def test_details_by_product_id(self, client):
        body = client.get("/api/compatibility/details?primary=1&secondary=4").get_json()
        assert body["compatible"] is False
        assert [issue["rule_name"] for issue in body["issues"]] == ["Сокет процессора"]
        assert client.get("/api/compatibility/details?primary=1&secondary=3").get_json()["compatible"] is True
        assert client.get("/api/compatibility/details?primary=1").status_code == 400
        assert client.get("/api/compatibility/details?primary=a&secondary=3").status_code == 400


class TestRuleAdminEndpoints:
    """Tests for /api/admin/compatibility/rules*."""

    RULE = {
        "name": "Сокет кулера",
        "description": "",
        "categories": [{"primaryCategoryId": 10, "secondaryCategoryId": 2}],
        "characteristics": [{"primaryCharacteristicId": 1, "secondaryCharacteristicId": 1,
                             "comparisonType": "contains_list", "values": []}],
    }

    def test_list(self, client):
        assert len(client.get("/api/admin/compatibility/rules").get_json()) == 6

    def test_crud(self, client):
        created = client.post("/api/admin/compatibility/rules", json=self.RULE)
        assert created.status_code == 201
        rule_id = created.get_json()["id"]

        url = f"/api/admin/compatibility/rules/{rule_id}"
        assert client.get(url).get_json()["name"] == "Сокет кулера"

        updated = client.put(url, json=dict(self.RULE, name="Сокет кулера v2")).get_json()
        assert updated["name"] == "Сокет кулера v2"

        assert client.delete(url).get_json() == {"success": True}
        assert client.get(url).status_code == 404

    def test_invalid_rule(self, client):
        assert client.post("/api/admin/compatibility/rules", json={"description": "no name"}).status_code == 400
        bad_reference = dict(self.RULE, categories=[{"primaryCategoryId": 999, "secondaryCategoryId": 2}])
        assert client.post("/api/admin/compatibility/rules", json=bad_reference).status_code == 400

    def test_export_is_an_attachment(self, client):
        response = client.get("/api/admin/compatibility/rules/export")
        assert "attachment" in response.headers["Content-Disposition"]
        assert json.loads(response.data)["version"] == "1.0"

    def test_import_json_body(self, client):
        document = client.get("/api/admin/compatibility/rules/export").get_json()
        response = client.post("/api/admin/compatibility/rules/import", json=document)
        assert response.get_json() == {"imported": 0, "skipped": 6}

    def test_import_uploaded_file(self, client):
        document = {"rules": [self.RULE]}
        upload = (io.BytesIO(json.dumps(document).encode("utf-8")), "rules.json")
        response = client.post("/api/admin/compatibility/rules/import", data={"file": upload},
                               content_type="multipart/form-data")
        assert response.get_json() == {"imported": 1, "skipped": 0}

    def test_import_rejects_other_documents(self, client):
        response = client.post("/api/admin/compatibility/rules/import", json={"rules": "none"})
        assert response.status_code == 400
        upload = (io.BytesIO(b"not json"), "rules.json")
        response = client.post("/api/admin/compatibility/rules/import", data={"file": upload},
                               content_type="multipart/form-data")
        assert response.status_code == 400
