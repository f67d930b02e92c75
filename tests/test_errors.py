from fastapi.testclient import TestClient
from app.main import app

client = TestClient(app)


def test_404_not_found():
    response = client.get("/non-existent-route")
    assert response.status_code == 404
    data = response.json()
    assert "error" in data
    assert "code" in data
    assert data["code"] == "HTTP_ERROR"


def test_validation_error_structure():
    # Temporary route to exercise request validation
    from pydantic import BaseModel

    class Item(BaseModel):
        name: str
        price: int

    @app.post("/test-validation")
    def create_item(item: Item):
        return item

    response = client.post("/test-validation", json={"name": "foo", "price": "invalid"})
    assert response.status_code == 422
    data = response.json()
    assert data["code"] == "VALIDATION_ERROR"
    assert "details" in data
    assert len(data["details"]) > 0


def test_custom_exception():
    from app.core.exceptions import ResourceNotFoundError

    @app.get("/test-custom-error")
    def trigger_custom_error():
        raise ResourceNotFoundError(message="Item not found")

    response = client.get("/test-custom-error")
    assert response.status_code == 404
    data = response.json()
    assert data["code"] == "NOT_FOUND"
    assert data["error"] == "Item not found"


def test_generation_failed_error():
    from app.core.exceptions import GenerationFailedError

    @app.get("/test-generation-error")
    def trigger_generation_error():
        raise GenerationFailedError(details={"reservation_id": "abc"})

    response = client.get("/test-generation-error")
    assert response.status_code == 500
    data = response.json()
    assert data["code"] == "GENERATION_FAILED"
    assert data["details"] == {"reservation_id": "abc"}


def test_liveness():
    response = client.get("/live")
    assert response.status_code == 200
    assert response.json() == {"status": "alive"}
