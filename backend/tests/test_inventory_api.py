import json
import os
from datetime import datetime

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 120


def _register(client, name, **extra):
    return client.post("/register", data={"name": name, **extra})


class TestInventoryAPI:
    def test_register_without_photo(self, client):
        response = _register(client, "Sensor X")

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["degraded"] is False
        assert body["source"] == "database"
        assert body["data"]["name"] == "Sensor X"
        assert body["data"]["photo_filename"] is None
        assert body["data"]["photo_url"] is None
        assert body["data"]["created_at"] == body["data"]["updated_at"]

    def test_register_accepts_inventory_name_field(self, client):
        response = client.post("/register", data={"inventory_name": "Legacy Form"})

        assert response.status_code == 201
        assert response.json()["data"]["name"] == "Legacy Form"

    def test_register_blank_name_yields_to_inventory_name(self, client):
        response = client.post("/register", data={"name": "", "inventory_name": "Legacy Form"})

        assert response.status_code == 201
        assert response.json()["data"]["name"] == "Legacy Form"

    def test_register_with_photo_serves_same_bytes(self, client):
        for i in range(4):
            _register(client, f"Filler {i}")

        response = client.post(
            "/register",
            data={"name": "Camera", "description": "lobby"},
            files={"photo": ("device.png", PNG_BYTES, "image/png")},
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["id"] == 7
        assert data["photo_filename"] == "7.png"
        assert data["photo_url"] == "/inventory/7/photo"

        photo = client.get("/inventory/7/photo")
        assert photo.status_code == 200
        assert photo.content == PNG_BYTES
        assert photo.headers["content-type"] == "image/png"
        assert client.get("/photos/7.png").content == PNG_BYTES

    def test_register_missing_name_is_400(self, client, settings):
        response = client.post("/register", data={"description": "nameless"})

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "validation_error"
        assert body["degraded"] is False
        # validation failures never reach the cache
        assert not os.path.exists(settings.cache_file)

    def test_register_rejects_json_body(self, client):
        response = client.post("/register", json={"name": "Sensor X"})

        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    def test_register_rejects_negative_price(self, client):
        response = _register(client, "Sensor X", price="-1")

        assert response.status_code == 400

    def test_register_rejects_oversized_photo(self, client, settings):
        settings.max_photo_bytes = 10
        response = client.post(
            "/register",
            data={"name": "Camera"},
            files={"photo": ("big.png", PNG_BYTES, "image/png")},
        )

        assert response.status_code == 400

    def test_list_inventory_envelope(self, client):
        _register(client, "Sensor X")

        response = client.get("/inventory")

        assert response.status_code == 200
        body = response.json()
        assert body["count"] == 3
        assert [item["id"] for item in body["data"]] == [1, 2, 3]
        assert all("photo_url" in item for item in body["data"])

    def test_get_missing_item_is_404(self, client):
        response = client.get("/inventory/99")

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    def test_non_numeric_id_is_400(self, client):
        assert client.get("/inventory/abc").status_code == 400

    def test_partial_update(self, client):
        created = _register(client, "Router", description="rack 4").json()["data"]

        response = client.put(f"/inventory/{created['id']}", json={"stock_quantity": 12})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["stock_quantity"] == 12
        assert data["name"] == "Router"
        assert data["description"] == "rack 4"
        assert datetime.fromisoformat(data["updated_at"]) > datetime.fromisoformat(created["updated_at"])

    def test_update_accepts_inventory_name(self, client):
        response = client.put("/inventory/1", json={"inventory_name": "Renamed"})

        assert response.json()["data"]["name"] == "Renamed"

    def test_update_negative_stock_is_400(self, client):
        assert client.put("/inventory/1", json={"stock_quantity": -5}).status_code == 400

    def test_update_missing_item_is_404(self, client, degraded_client):
        assert client.put("/inventory/99", json={"name": "Ghost"}).status_code == 404
        assert degraded_client.put("/inventory/99", json={"name": "Ghost"}).status_code == 404

    def test_delete_cascades_photo(self, client, settings):
        created = client.post(
            "/register",
            data={"name": "Camera"},
            files={"photo": ("device.png", PNG_BYTES, "image/png")},
        ).json()["data"]
        photo_path = os.path.join(settings.photo_dir, created["photo_filename"])
        assert os.path.exists(photo_path)

        response = client.delete(f"/inventory/{created['id']}")

        assert response.status_code == 200
        assert not os.path.exists(photo_path)
        assert client.get(f"/inventory/{created['id']}/photo").status_code == 404
        assert client.delete(f"/inventory/{created['id']}").status_code == 404

    def test_photo_of_item_without_photo_is_404(self, client):
        assert client.get("/inventory/1/photo").status_code == 404

    def test_photo_file_missing_on_disk_is_404(self, client, settings):
        created = client.post(
            "/register",
            data={"name": "Camera"},
            files={"photo": ("device.png", PNG_BYTES, "image/png")},
        ).json()["data"]
        os.remove(os.path.join(settings.photo_dir, created["photo_filename"]))

        assert client.get(f"/inventory/{created['id']}/photo").status_code == 404
        assert client.get(f"/inventory/{created['id']}").json()["data"]["photo_url"] is not None

    def test_replace_photo(self, client, settings):
        created = client.post(
            "/register",
            data={"name": "Camera"},
            files={"photo": ("old.jpg", b"old-bytes", "image/jpeg")},
        ).json()["data"]

        response = client.put(
            f"/inventory/{created['id']}/photo",
            files={"photo": ("new.png", PNG_BYTES, "image/png")},
        )

        assert response.status_code == 200
        assert response.json()["photo_url"] == f"/inventory/{created['id']}/photo"
        assert not os.path.exists(os.path.join(settings.photo_dir, created["photo_filename"]))
        assert client.get(f"/inventory/{created['id']}/photo").content == PNG_BYTES

    def test_replace_photo_requires_file(self, client):
        response = client.put("/inventory/1/photo", files={"other": ("x.txt", b"x", "text/plain")})

        assert response.status_code == 400

    def test_replace_photo_of_missing_item_is_404(self, client):
        response = client.put("/inventory/99/photo", files={"photo": ("new.png", PNG_BYTES, "image/png")})

        assert response.status_code == 404

    def test_search_with_photo_reference(self, client):
        created = client.post(
            "/register",
            data={"name": "Camera", "description": "lobby"},
            files={"photo": ("device.png", PNG_BYTES, "image/png")},
        ).json()["data"]
        assert created["id"] == 3

        annotated = client.post("/search", data={"id": "3", "has_photo": "true"})
        plain = client.post("/search", data={"id": "3"})

        assert annotated.status_code == 200
        assert annotated.json()["data"]["description"] == "lobby [Photo: /inventory/3/photo]"
        assert plain.json()["data"]["description"] == "lobby"

    def test_search_requires_id(self, client):
        assert client.post("/search", data={}).status_code == 400
        assert client.post("/search", data={"id": "abc"}).status_code == 400

    def test_search_missing_item_is_404(self, client):
        assert client.post("/search", data={"id": "99"}).status_code == 404

    def test_products_returns_raw_rows(self, client):
        rows = client.get("/products").json()

        assert [row["id"] for row in rows] == [1, 2]
        assert "photo_url" not in rows[0]

    def test_unknown_route_is_404(self, client):
        response = client.get("/nope")

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"


class TestDegradedMode:
    def test_register_falls_back_to_cache(self, degraded_client, settings):
        response = _register(degraded_client, "Sensor X")

        assert response.status_code == 201
        body = response.json()
        assert body["degraded"] is True
        assert body["source"] == "cache"
        assert body["message"] == "Saved to cache (database unavailable)"
        assert body["data"]["id"] == 1
        with open(settings.cache_file, encoding="utf-8") as f:
            assert json.load(f)[0]["name"] == "Sensor X"

    def test_reads_are_marked_degraded(self, degraded_client):
        _register(degraded_client, "Sensor X")

        body = degraded_client.get("/inventory").json()

        assert body["degraded"] is True
        assert body["count"] == 1
        assert body["message"] == "Using cached data (database unavailable)"

    def test_validation_error_is_not_degraded(self, degraded_client):
        response = degraded_client.post("/register", data={"name": ""})

        assert response.status_code == 400
        assert response.json()["degraded"] is False

    def test_not_found_from_cache_is_marked_degraded(self, degraded_client):
        response = degraded_client.get("/inventory/99")

        assert response.status_code == 404
        assert response.json()["degraded"] is True

    def test_photo_round_trip_in_cache_mode(self, degraded_client):
        created = degraded_client.post(
            "/register",
            data={"name": "Camera"},
            files={"photo": ("device.png", PNG_BYTES, "image/png")},
        ).json()["data"]

        photo = degraded_client.get(f"/inventory/{created['id']}/photo")

        assert photo.content == PNG_BYTES
        assert photo.headers["x-degraded"] == "true"

    def test_products_has_no_fallback(self, degraded_client):
        response = degraded_client.get("/products")

        assert response.status_code == 503
        assert response.json()["error"] == "backend_unavailable"

    def test_health_reports_disconnected_database(self, degraded_client, client):
        assert degraded_client.get("/health").json()["database"] == "disconnected"
        assert client.get("/health").json()["database"] == "connected"

    def test_test_db_is_503(self, degraded_client):
        assert degraded_client.get("/test-db").status_code == 503


def test_test_db_reports_tables(client):
    body = client.get("/test-db").json()

    assert "products" in body["data"]["tables"]
    assert body["data"]["products_count"] == 2


def test_cache_survives_restart(settings, down_engine):
    from fastapi.testclient import TestClient
    from main import create_app

    with TestClient(create_app(settings, engine=down_engine)) as first:
        _register(first, "Sensor X")

    with TestClient(create_app(settings, engine=down_engine)) as second:
        body = second.get("/inventory").json()
        created = _register(second, "Sensor Y").json()["data"]

    assert [item["name"] for item in body["data"]] == ["Sensor X"]
    assert created["id"] == 2
