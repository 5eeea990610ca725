"""Admin dashboard, payment proof upload and app-level endpoint tests."""

import io

from fastapi.testclient import TestClient

from storefront.main import app
from storefront.services.file_storage import FileStorage

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


class TestDashboardEndpoint:
    def test_admin_only(self, client, customer_headers):
        assert client.get("/api/admin/stats").status_code == 401
        assert client.get("/api/admin/stats", headers=customer_headers).status_code == 403

    def test_stats_after_checkout(self, client, customer_headers, admin_headers, make_product):
        product = make_product(name="Mango Banana Boost", price=149, stock=5)
        client.post("/api/orders", json={
            "items": [{"productId": product.id, "quantity": 2, "price": 149}],
            "total": 298,
            "paymentMethod": "COD"
        }, headers=customer_headers)

        response = client.get("/api/admin/stats", headers=admin_headers)

        assert response.status_code == 200
        stats = response.json()
        assert stats["totalRevenue"] == 298
        assert stats["totalOrders"] == 1
        assert stats["topProducts"] == [{"name": "Mango Banana Boost", "totalSold": 2}]
        assert len(stats["recentSales"]) == 1
        assert stats["recentSales"][0]["amount"] == 298


class TestUploadEndpoint:
    def test_upload_and_serve(self, client, customer_headers):
        response = client.post(
            "/api/upload",
            files={"paymentProof": ("receipt.png", io.BytesIO(PNG_BYTES), "image/png")},
            headers=customer_headers
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["fileUrl"].startswith("/uploads/paymentProof-")
        assert data["fileUrl"].endswith(".png")

        served = client.get(data["fileUrl"])
        assert served.status_code == 200
        assert served.content == PNG_BYTES

    def test_requires_authentication(self, client):
        response = client.post(
            "/api/upload",
            files={"paymentProof": ("receipt.png", io.BytesIO(PNG_BYTES), "image/png")}
        )

        assert response.status_code == 401

    def test_rejects_non_image(self, client, customer_headers):
        response = client.post(
            "/api/upload",
            files={"paymentProof": ("notes.txt", io.BytesIO(b"hello"), "text/plain")},
            headers=customer_headers
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Only image files are allowed"}

    def test_rejects_image_extension_with_wrong_type(self, client, customer_headers):
        response = client.post(
            "/api/upload",
            files={"paymentProof": ("receipt.png", io.BytesIO(b"<html>"), "text/html")},
            headers=customer_headers
        )

        assert response.status_code == 400

    def test_missing_file(self, client, customer_headers):
        response = client.post("/api/upload", headers=customer_headers)

        assert response.status_code == 400
        assert response.json() == {"error": "No file uploaded"}

    def test_rejects_oversized_file(self, client, customer_headers, monkeypatch, tmp_path):
        storage = FileStorage(upload_dir=str(tmp_path), max_bytes=16)
        monkeypatch.setattr(app.state, "file_storage", storage)

        response = client.post(
            "/api/upload",
            files={"paymentProof": ("receipt.png", io.BytesIO(PNG_BYTES), "image/png")},
            headers=customer_headers
        )

        assert response.status_code == 400
        assert response.json()["error"].startswith("File too large")
        assert list(tmp_path.iterdir()) == []


class TestAppEndpoints:
    def test_root(self, client):
        assert client.get("/").json() == {"message": "Jusas Tropical Smoothie API is running"}

    def test_health(self, client):
        response = client.get("/api/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_unknown_route_uses_error_body(self, client):
        response = client.get("/api/nothing-here")

        assert response.status_code == 404
        assert "error" in response.json()

    def test_lifespan_starts_and_stops(self):
        with TestClient(app) as started:
            assert started.get("/api/health").status_code == 200
