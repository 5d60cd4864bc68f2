from types import SimpleNamespace

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from storefront.models.order import Order, OrderStatus, PaymentStatus
from storefront.models.product import Product, ProductCategory, ProductQuality, ProductVariant
from storefront.services import order_service


def _create_variant(db: Session, stock: int = 10, price: float = 1100.0) -> ProductVariant:
    product = Product(name="Oud Royale", slug="oud-royale", category=ProductCategory.PERFUME)
    db.add(product)
    db.flush()
    variant = ProductVariant(
        product_id=product.id,
        product_quality=ProductQuality.STANDARD,
        price=price,
        mrp=price + 400,
        stock=stock,
        volume=50,
        sku="OUD-ROYALE-STD",
    )
    db.add(variant)
    db.commit()
    db.refresh(variant)
    return variant


def _place_order(client: TestClient, variant: ProductVariant, payment_method: str, quantity: int = 2) -> dict:
    response = client.post(
        "/api/v1/cart/items",
        json={"product_id": variant.product_id, "variant_id": variant.id, "quantity": quantity},
    )
    assert response.status_code == 201
    response = client.post(
        "/api/v1/orders",
        json={
            "first_name": "Sana",
            "last_name": "Mirza",
            "email": "sana@example.com",
            "phone": "9988776655",
            "address": "7 Brigade Road, Ashok Nagar",
            "city": "Bengaluru",
            "state": "Karnataka",
            "pincode": "560025",
            "payment_method": payment_method,
        },
    )
    assert response.status_code == 201
    return response.json()["data"]


def test_admin_routes_require_session(client: TestClient):
    response = client.get("/api/v1/admin/dashboard")
    assert response.status_code == 401
    assert response.json()["message"] == "Admin authentication required"

    assert client.get("/api/v1/admin/orders").status_code == 401
    assert client.post("/api/v1/admin/products", json={"name": "X", "category": "perfume"}).status_code == 401


def test_admin_login_failure(client: TestClient):
    response = client.post("/api/v1/admin/login", data={"password": "wrong-password"})
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid password"
    assert client.cookies.get("admin_session") is None


def test_admin_login_and_logout(admin_client: TestClient):
    assert admin_client.cookies.get("admin_session") is not None

    session = admin_client.get("/api/v1/admin/session")
    assert session.status_code == 200
    assert session.json()["data"]["authenticated"] is True

    assert admin_client.post("/api/v1/admin/logout").status_code == 200
    admin_client.cookies.clear()
    assert admin_client.get("/api/v1/admin/session").status_code == 401


def test_admin_product_crud(admin_client: TestClient, db_session: Session):
    created = admin_client.post(
        "/api/v1/admin/products",
        json={"name": "Oud Royale", "category": "perfume", "top_notes": "Saffron", "is_featured": True},
    )
    assert created.status_code == 201
    product_id = created.json()["data"]["id"]
    assert created.json()["data"]["slug"] == "oud-royale"

    duplicate = admin_client.post("/api/v1/admin/products", json={"name": "Oud Royale", "category": "attar"})
    assert duplicate.json()["data"]["slug"] == "oud-royale-2"

    updated = admin_client.put(f"/api/v1/admin/products/{product_id}", json={"name": "Oud Royale Intense"})
    assert updated.status_code == 200
    assert updated.json()["data"]["slug"] == "oud-royale-intense"

    listing = admin_client.get("/api/v1/admin/products", params={"category": "perfume"})
    assert listing.status_code == 200
    assert listing.json()["meta"]["total"] == 1
    assert listing.json()["data"][0]["name"] == "Oud Royale Intense"

    deleted = admin_client.delete(f"/api/v1/admin/products/{product_id}")
    assert deleted.status_code == 200
    assert db_session.query(Product).filter(Product.id == product_id).first() is None
    assert admin_client.get(f"/api/v1/admin/products/{product_id}").status_code == 404


def test_admin_variant_upsert(admin_client: TestClient, db_session: Session):
    product_id = admin_client.post(
        "/api/v1/admin/products",
        json={"name": "Rose Attar", "category": "attar"},
    ).json()["data"]["id"]
    url = f"/api/v1/admin/products/{product_id}/variants"

    created = admin_client.put(
        url,
        json={
            "variants": [
                {"product_quality": "Standard", "price": 400, "mrp": 500, "stock": 5, "volume": 6, "sku": "rose-std"},
                {"product_quality": "Premium", "price": 650, "mrp": 800, "stock": 3, "volume": 12, "sku": "rose-prm"},
            ]
        },
    )
    assert created.status_code == 200
    variants = created.json()["data"]
    assert [variant["sku"] for variant in variants] == ["ROSE-STD", "ROSE-PRM"]

    standard_id = variants[0]["id"]
    edited = admin_client.put(
        url,
        json={
            "variants": [
                {"id": standard_id, "product_quality": "Standard", "price": 450, "mrp": 500, "sku": "ROSE-STD"},
            ]
        },
    )
    assert edited.status_code == 200
    assert db_session.query(ProductVariant).filter(ProductVariant.id == standard_id).one().price == 450

    clash = admin_client.put(
        url,
        json={"variants": [{"product_quality": "Premium", "price": 700, "mrp": 900, "sku": "ROSE-PRM-2"}]},
    )
    assert clash.status_code == 409

    above_mrp = admin_client.put(
        url,
        json={"variants": [{"product_quality": "Luxury", "price": 1200, "mrp": 1000, "sku": "ROSE-LUX"}]},
    )
    assert above_mrp.status_code == 422
    assert above_mrp.json()["message"] == "Validation failed"

    removed = admin_client.delete(f"/api/v1/admin/variants/{standard_id}")
    assert removed.status_code == 200
    assert len(admin_client.get(url).json()["data"]) == 1


def test_admin_images_and_hero_slides(admin_client: TestClient, db_session: Session):
    product_id = admin_client.post(
        "/api/v1/admin/products",
        json={"name": "Musk Amber", "category": "perfume"},
    ).json()["data"]["id"]

    image = admin_client.post("/api/v1/admin/images", json={"url": "https://cdn.example.com/musk.jpg"})
    assert image.status_code == 201
    image_id = image.json()["data"]["id"]
    assert admin_client.post("/api/v1/admin/images", json={"url": "https://cdn.example.com/musk.jpg"}).status_code == 409

    attached = admin_client.post(
        f"/api/v1/admin/products/{product_id}/images",
        json={"image_id": image_id, "is_primary": True},
    )
    assert attached.status_code == 201
    detail = admin_client.get(f"/api/v1/admin/products/{product_id}").json()["data"]
    assert detail["primary_image"] == "https://cdn.example.com/musk.jpg"

    slide = admin_client.post("/api/v1/admin/hero-slides", json={"image_id": image_id, "title": "New Arrivals"})
    assert slide.status_code == 201
    assert slide.json()["data"]["image_url"] == "https://cdn.example.com/musk.jpg"

    second = admin_client.post(
        "/api/v1/admin/hero-slides",
        json={"image_url": "https://cdn.example.com/eid.jpg", "title": "Eid Collection", "display_order": 1},
    )
    no_image = admin_client.post("/api/v1/admin/hero-slides", json={"title": "Broken"})
    assert no_image.status_code == 422

    reordered = admin_client.put(
        "/api/v1/admin/hero-slides/reorder",
        json={"slide_ids": [second.json()["data"]["id"], slide.json()["data"]["id"]]},
    )
    assert reordered.status_code == 200
    public = admin_client.get("/api/v1/hero-slides").json()["data"]
    assert [item["title"] for item in public] == ["Eid Collection", "New Arrivals"]


def test_admin_cancel_restores_stock_and_blocks_reopen(admin_client: TestClient, db_session: Session):
    variant = _create_variant(db_session, stock=10)
    order_data = _place_order(admin_client, variant, "cod", quantity=2)
    db_session.refresh(variant)
    assert variant.stock == 8

    url = f"/api/v1/admin/orders/{order_data['id']}/status"
    cancelled = admin_client.put(url, json={"status": "cancelled", "admin_notes": "Customer called"})
    assert cancelled.status_code == 200
    assert cancelled.json()["data"]["status"] == "cancelled"
    assert cancelled.json()["data"]["admin_notes"] == "Customer called"

    db_session.refresh(variant)
    assert variant.stock == 10

    reopen = admin_client.put(url, json={"status": "confirmed"})
    assert reopen.status_code == 400
    assert reopen.json()["message"] == "Cancelled orders cannot be reopened"

    empty = admin_client.put(url, json={})
    assert empty.status_code == 422


def test_admin_marks_online_order_paid(admin_client: TestClient, db_session: Session, monkeypatch):
    queued = []
    monkeypatch.setattr(order_service, "send_order_notification_messages", SimpleNamespace(delay=queued.append))

    variant = _create_variant(db_session, stock=10)
    order_data = _place_order(admin_client, variant, "online", quantity=3)
    assert queued == []

    url = f"/api/v1/admin/orders/{order_data['id']}/status"
    response = admin_client.put(url, json={"payment_status": "paid"})
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["payment_status"] == "paid"
    assert data["status"] == "confirmed"
    assert data["payment_confirmed_by"] == "admin"
    assert data["payment_events"][0]["source"] == "admin"

    db_session.refresh(variant)
    assert variant.stock == 7

    order = db_session.query(Order).filter(Order.id == order_data["id"]).one()
    assert order.payment_status == PaymentStatus.PAID
    assert order.status == OrderStatus.CONFIRMED

    assert len(queued) == 1
    assert queued[0]["order_number"] == order_data["order_number"]
    assert queued[0]["payment_mode"] == "online"

    assert admin_client.put(url, json={"payment_status": "paid"}).status_code == 200
    assert len(queued) == 1


def test_admin_order_listing_stats_and_dashboard(admin_client: TestClient, db_session: Session):
    variant = _create_variant(db_session, stock=20)
    cod = _place_order(admin_client, variant, "cod", quantity=2)
    _place_order(admin_client, variant, "online", quantity=1)

    listing = admin_client.get("/api/v1/admin/orders", params={"payment_status": "pending"})
    assert listing.status_code == 200
    assert listing.json()["meta"]["total"] == 2

    search = admin_client.get("/api/v1/admin/orders", params={"search": cod["order_number"]})
    assert [order["order_number"] for order in search.json()["data"]] == [cod["order_number"]]

    stats = admin_client.get("/api/v1/admin/orders/stats").json()["data"]
    assert stats["total_orders"] == 2
    assert stats["total_revenue"] == 3300.0
    assert stats["pending_orders"] == 1
    assert stats["cod_orders"] == 1
    assert stats["online_orders"] == 1

    dashboard = admin_client.get("/api/v1/admin/dashboard")
    assert dashboard.status_code == 200
    data = dashboard.json()["data"]
    assert data["stats"]["total_products"] == 1
    assert data["stats"]["total_orders"] == 2
    assert data["stats"]["total_revenue"] == 0
    assert data["stats"]["total_customers"] == 1
    assert len(data["recent_activities"]) == 3

    detail = admin_client.get(f"/api/v1/admin/orders/{cod['id']}")
    assert detail.status_code == 200
    assert detail.json()["data"]["stock_deducted"] is True
    assert admin_client.get("/api/v1/admin/orders/99999").status_code == 404
