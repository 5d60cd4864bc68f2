import hashlib
import os
import tempfile
from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

ADMIN_PASSWORD = "haafiz-admin-pass"

os.environ["ENVIRONMENT"] = "development"
os.environ.setdefault("DATABASE_URL", f"sqlite:///{tempfile.gettempdir()}/storefront-unused.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key-with-enough-length-1234")
os.environ["RAZORPAY_KEY_ID"] = "rzp_test_storefront"
os.environ["RAZORPAY_KEY_SECRET"] = "test_key_secret"
os.environ["RAZORPAY_WEBHOOK_SECRET"] = "test_webhook_secret"
os.environ["ADMIN_PASSWORD_HASH"] = hashlib.sha256(ADMIN_PASSWORD.encode("utf-8")).hexdigest()
os.environ["BUSINESS_PHONE"] = ""
os.environ["WHATSAPP_PROVIDER_URL"] = ""
os.environ["SHIPPING_CHARGES_ENABLED"] = "false"

import storefront.db.base  # noqa: F401,E402
from storefront.core.celery_app import celery_app  # noqa: E402
from storefront.db.base import Base  # noqa: E402
from storefront.db.session import get_db  # noqa: E402
from storefront.main import app  # noqa: E402

# Notification tasks run inline instead of going to the broker.
celery_app.conf.task_always_eager = True


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    db_file = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
    db_file.close()

    engine = create_engine(
        f"sqlite:///{db_file.name}",
        connect_args={"check_same_thread": False},
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()
        os.unlink(db_file.name)


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.state.limiter.reset()
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def admin_client(client: TestClient) -> TestClient:
    response = client.post("/api/v1/admin/login", data={"password": ADMIN_PASSWORD})
    assert response.status_code == 200
    return client
