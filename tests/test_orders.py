from datetime import datetime, timedelta
from uuid import uuid4

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from storefront.models.cart import CartItem
from storefront.models.order import Order, OrderStatus, PaymentMethod, PaymentStatus
from storefront.models.product import Product, ProductCategory, ProductQuality, ProductVariant
from storefront.services.order_service import expire_unpaid_orders


def _create_variant(db: Session, stock: int = 10, price: float = 1100.0, name: str = "Oud Royale") -> ProductVariant:
    product = Product(name=name, slug=name.lower().replace(" ", "-"), category=ProductCategory.PERFUME)
    db.add(product)
    db.flush()
    variant = ProductVariant(
        product_id=product.id,
        product_quality=ProductQuality.STANDARD,
        price=price,
        mrp=price + 400,
        stock=stock,
        volume=50,
        sku=f"{product.slug.upper()}-STD",
    )
    db.add(variant)
    db.commit()
    db.refresh(variant)
    return variant


def _add_to_cart(client: TestClient, variant: ProductVariant, quantity: int) -> None:
    response = client.post(
        "/api/v1/cart/items",
        json={"product_id": variant.product_id, "variant_id": variant.id, "quantity": quantity},
    )
    assert response.status_code == 201


def _checkout_form(payment_method: str = "cod", **overrides) -> dict:
    form = {
        "first_name": "Ayaan",
        "last_name": "Shaikh",
        "email": "ayaan@example.com",
        "phone": "9876543210",
        "address": "12 Mohammed Ali Road, Near Minara Masjid",
        "city": "Mumbai",
        "state": "Maharashtra",
        "pincode": "400003",
        "payment_method": payment_method,
    }
    form.update(overrides)
    return form


def test_cod_order_confirms_and_deducts_stock(client: TestClient, db_session: Session):
    variant = _create_variant(db_session, stock=10)
    _add_to_cart(client, variant, 2)

    response = client.post("/api/v1/orders", json=_checkout_form("cod", notes="<b>Ring</b> the bell"))
    assert response.status_code == 201
    payload = response.json()
    assert payload["message"] == "Order placed successfully. Pay on delivery."

    data = payload["data"]
    assert data["order_number"].startswith("HAF-")
    assert data["status"] == "confirmed"
    assert data["payment_status"] == "pending"
    assert data["total_amount"] == 2200.0
    assert data["shipping_amount"] == 0.0
    assert data["customer_name"] == "Ayaan Shaikh"
    assert data["notes"] == "Ring the bell"
    assert data["items"][0]["quantity"] == 2
    assert "payment" not in data

    db_session.refresh(variant)
    assert variant.stock == 8
    assert db_session.query(CartItem).count() == 0

    order = db_session.query(Order).filter(Order.order_number == data["order_number"]).one()
    assert order.stock_deducted is True
    assert order.expires_at is None


def test_online_order_stays_pending_with_payment_details(client: TestClient, db_session: Session):
    variant = _create_variant(db_session, stock=10)
    _add_to_cart(client, variant, 2)

    response = client.post("/api/v1/orders", json=_checkout_form("online"))
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["status"] == "pending"
    assert data["payment_stage"] == "created"
    assert data["payment"] == {
        "amount": 220000,
        "currency": "INR",
        "receipt": data["order_number"],
        "razorpay_key_id": "rzp_test_storefront",
    }

    db_session.refresh(variant)
    assert variant.stock == 10

    order = db_session.query(Order).filter(Order.order_number == data["order_number"]).one()
    assert order.stock_deducted is False
    assert order.expires_at is not None


def test_empty_cart_order_rejection(client: TestClient, db_session: Session):
    response = client.post("/api/v1/orders", json=_checkout_form())

    assert response.status_code == 400
    assert response.json()["message"] == "Cart is empty"


def test_insufficient_stock(client: TestClient, db_session: Session):
    variant = _create_variant(db_session, stock=1)
    _add_to_cart(client, variant, 2)

    response = client.post("/api/v1/orders", json=_checkout_form())

    assert response.status_code == 400
    assert response.json()["message"] == "Insufficient stock for Oud Royale. Only 1 items available"
    assert db_session.query(Order).count() == 0
    assert db_session.query(CartItem).count() == 1


def test_checkout_form_validation(client: TestClient, db_session: Session):
    variant = _create_variant(db_session)
    _add_to_cart(client, variant, 1)

    response = client.post(
        "/api/v1/orders",
        json=_checkout_form(phone="98765", pincode="4000", state="Atlantis"),
    )

    assert response.status_code == 422
    payload = response.json()
    assert payload["message"] == "Validation failed"
    fields = {error["loc"][-1] for error in payload["errors"]}
    assert {"phone", "pincode", "state"} <= fields


def test_expected_total_mismatch_persists_nothing(client: TestClient, db_session: Session):
    variant = _create_variant(db_session, price=1100.0)
    _add_to_cart(client, variant, 2)

    # Price changed after the item was added to the cart.
    variant.price = 1200.0
    db_session.commit()

    response = client.post("/api/v1/orders", json=_checkout_form(expected_total=2200.0))

    assert response.status_code == 409
    payload = response.json()
    assert payload["data"]["total_amount"] == 2400.0
    assert payload["data"]["subtotal"] == 2400.0
    assert db_session.query(Order).count() == 0
    assert db_session.query(CartItem).count() == 1

    retry = client.post("/api/v1/orders", json=_checkout_form(expected_total=2400.0))
    assert retry.status_code == 201
    assert retry.json()["data"]["items"][0]["unit_price"] == 1200.0


def test_order_creation_is_idempotent_with_same_key(client: TestClient, db_session: Session):
    variant = _create_variant(db_session, stock=10)
    _add_to_cart(client, variant, 1)
    key = str(uuid4())

    first = client.post("/api/v1/orders", json=_checkout_form(idempotency_key=key))
    assert first.status_code == 201

    second = client.post("/api/v1/orders", json=_checkout_form(idempotency_key=key))
    assert second.status_code == 200
    assert second.json()["message"] == "Order already exists"
    assert second.json()["data"]["order_number"] == first.json()["data"]["order_number"]

    assert db_session.query(Order).count() == 1
    db_session.refresh(variant)
    assert variant.stock == 9


def test_order_snapshot_survives_catalog_changes(client: TestClient, db_session: Session):
    variant = _create_variant(db_session, price=1100.0)
    _add_to_cart(client, variant, 1)
    order_number = client.post("/api/v1/orders", json=_checkout_form()).json()["data"]["order_number"]

    variant.price = 1500.0
    variant.product.name = "Oud Royale Intense"
    db_session.commit()

    response = client.get(f"/api/v1/orders/{order_number}")
    assert response.status_code == 200
    item = response.json()["data"]["items"][0]
    assert item["product_name"] == "Oud Royale"
    assert item["unit_price"] == 1100.0


def test_order_detail_is_limited_to_owning_session(client: TestClient, db_session: Session):
    variant = _create_variant(db_session)
    _add_to_cart(client, variant, 1)
    order_number = client.post("/api/v1/orders", json=_checkout_form()).json()["data"]["order_number"]

    assert client.get(f"/api/v1/orders/{order_number}").status_code == 200

    client.cookies.clear()
    response = client.get(f"/api/v1/orders/{order_number}")
    assert response.status_code == 404
    assert response.json()["message"] == "Order not found"


def test_expire_unpaid_orders_cancels_only_stale_online_orders(client: TestClient, db_session: Session):
    variant = _create_variant(db_session, stock=10)
    _add_to_cart(client, variant, 1)
    online_number = client.post("/api/v1/orders", json=_checkout_form("online")).json()["data"]["order_number"]
    _add_to_cart(client, variant, 1)
    cod_number = client.post("/api/v1/orders", json=_checkout_form("cod")).json()["data"]["order_number"]

    online = db_session.query(Order).filter(Order.order_number == online_number).one()
    online.expires_at = datetime.utcnow() - timedelta(minutes=1)
    db_session.commit()

    assert expire_unpaid_orders(db_session) == 1

    online = db_session.query(Order).filter(Order.order_number == online_number).one()
    cod = db_session.query(Order).filter(Order.order_number == cod_number).one()
    assert online.status == OrderStatus.CANCELLED
    assert online.payment_method == PaymentMethod.ONLINE
    assert online.payment_status == PaymentStatus.PENDING
    assert cod.status == OrderStatus.CONFIRMED

    db_session.refresh(variant)
    assert variant.stock == 9
