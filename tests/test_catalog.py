import pytest
from fastapi.testclient import TestClient

from database import Collections
from errors import StorageError
from main import create_app
from schemas import resolve_image_url
from storefront import CatalogReader


class TestCatalogReader:
    def test_returns_only_active_products(self, collections, products):
        reader = CatalogReader(collections.products, "http://uploads.test", timeout=3)
        names = [p.name for p in reader.active_products()]
        assert names == ["Fresh fish", "Wool scarf"]

    def test_projects_catalog_fields(self, collections, products):
        reader = CatalogReader(collections.products, "http://uploads.test", timeout=3)
        fish = reader.active_products()[0]
        assert fish.id == str(products["fish"])
        assert fish.price == 150
        assert fish.description == "Caught this morning"
        assert fish.image_path == "/uploads/fish.png"

    def test_home_view_resolves_image_urls(self, collections, products):
        reader = CatalogReader(collections.products, "http://uploads.test/", timeout=3)
        view = reader.home_view()
        assert [c.image_url for c in view.products] == [
            "http://uploads.test/uploads/fish.png",
            "https://cdn.example.com/scarf.png",
        ]
        assert view.default_name == ""

    def test_query_failure_is_storage_error(self, failing_collection):
        reader = CatalogReader(failing_collection, "http://uploads.test", timeout=3)
        with pytest.raises(StorageError):
            reader.active_products()

    def test_malformed_product_is_storage_error(self, db, collections):
        db.products.insert_one({"name": "Broken", "price": "free", "is_active": True})
        reader = CatalogReader(collections.products, "http://uploads.test", timeout=3)
        with pytest.raises(StorageError):
            reader.active_products()


class TestResolveImageUrl:
    @pytest.mark.parametrize("base, path, expected", [
        ("http://localhost:4100", "/uploads/a.png", "http://localhost:4100/uploads/a.png"),
        ("http://localhost:4100/", "uploads/a.png", "http://localhost:4100/uploads/a.png"),
        ("http://localhost:4100", "https://cdn.example.com/a.png", "https://cdn.example.com/a.png"),
        ("http://localhost:4100", "", ""),
    ])
    def test_resolve(self, base, path, expected):
        assert resolve_image_url(base, path) == expected


class TestHomePage:
    def test_renders_catalog_and_buyer_form(self, client, products):
        response = client.get("/")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        body = response.text
        assert "Fresh fish" in body
        assert "Wool scarf" in body
        assert "Old sled" not in body
        assert f'name="qty_{products["fish"]}"' in body
        assert "http://uploads.test/uploads/fish.png" in body
        assert "1,200" in body
        assert 'name="buyer_name"' in body

    def test_escapes_product_text(self, client, db):
        db.products.insert_one({
            "name": "<script>alert(1)</script>",
            "price": 1,
            "description": "",
            "image_path": "",
            "is_active": True,
        })
        body = client.get("/").text
        assert "<script>alert(1)</script>" not in body
        assert "&lt;script&gt;" in body

    def test_storage_failure_is_server_error(self, settings, db, failing_collection):
        collections = Collections(products=failing_collection, orders=db.orders, deliveries=db.deliveries)
        client = TestClient(create_app(settings, collections))
        response = client.get("/")
        assert response.status_code == 500
        assert "Fresh fish" not in response.text
