"""HTTP surface tests against patched services (no database)."""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

import main
from cars import service as car_service
from core.config import Config
from core.errors import ConflictError, NotFoundError
from users import service as user_service

from conftest import CAR_ID, OTHER_USER_ID, USER_ID


@pytest.fixture
def client():
    return TestClient(main.app)


@pytest.fixture
def patch_service(monkeypatch):
    def _patch(module, name, **kwargs):
        mock = AsyncMock(**kwargs)
        monkeypatch.setattr(module, name, mock)
        return mock

    return _patch


@pytest.fixture
def app_with_features():
    """Client for an app built with the given feature flags."""

    def _build(**flags):
        return TestClient(main.create_app(Config({"features": flags})))

    return _build


class TestCorrelationId:
    def test_new_id_is_generated(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}
        assert response.headers["X-Correlation-ID"]

    def test_inbound_correlation_id_is_echoed(self, client):
        response = client.get("/health", headers={"X-Correlation-ID": "abc-123"})

        assert response.headers["X-Correlation-ID"] == "abc-123"

    def test_request_id_is_used_as_fallback(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-9"})

        assert response.headers["X-Correlation-ID"] == "req-9"

    def test_metrics_endpoint_is_left_alone(self, client):
        response = client.get("/metrics")

        assert response.status_code == 200
        assert "X-Correlation-ID" not in response.headers
        assert "http_requests_total" in response.text


class TestErrors:
    def test_not_found_body(self, client, patch_service):
        patch_service(car_service, "find_one", side_effect=NotFoundError(f"Car with ID {CAR_ID} not found"))

        response = client.get(f"/cars/{CAR_ID}")

        assert response.status_code == 404
        body = response.json()
        assert body["statusCode"] == 404
        assert body["message"] == f"Car with ID {CAR_ID} not found"
        assert body["path"] == f"/cars/{CAR_ID}"
        assert body["method"] == "GET"
        assert "timestamp" in body

    def test_conflict(self, client, patch_service):
        patch_service(user_service, "create", side_effect=ConflictError("Email already exists"))

        response = client.post("/users", json={"email": "ada@example.com", "name": "Ada"})

        assert response.status_code == 409
        assert response.json()["message"] == "Email already exists"

    def test_invalid_path_id_is_bad_request(self, client):
        response = client.get("/users/not-a-uuid")

        assert response.status_code == 400
        assert isinstance(response.json()["message"], list)

    def test_invalid_body_is_bad_request(self, client):
        response = client.post("/users", json={"email": "not-an-email", "name": "Ada"})

        assert response.status_code == 400
        assert any("email" in message for message in response.json()["message"])

    def test_unknown_field_is_rejected(self, client):
        response = client.post("/users", json={"email": "ada@example.com", "name": "Ada", "role": "admin"})

        assert response.status_code == 400

    def test_unexpected_error_is_hidden(self, client, patch_service):
        patch_service(user_service, "find_one", side_effect=RuntimeError("connection reset by peer"))

        response = client.get(f"/users/{USER_ID}")

        assert response.status_code == 500
        assert response.json()["message"] == "Internal server error"
        assert response.headers["X-Correlation-ID"]

    def test_unknown_route(self, client):
        response = client.get("/nowhere")

        assert response.status_code == 404
        assert response.json()["statusCode"] == 404


class TestUsersApi:
    @pytest.mark.parametrize("params", ["minAge=0", "maxAge=0", "limit=0"])
    def test_out_of_range_query_is_bad_request(self, client, patch_service, params):
        find_all = patch_service(user_service, "find_all")

        response = client.get(f"/users?{params}")

        assert response.status_code == 400
        find_all.assert_not_awaited()

    def test_large_limit_is_accepted(self, client, patch_service):
        patch_service(user_service, "find_all", return_value={"users": [], "total": 0})

        assert client.get("/users?limit=500").status_code == 200

    def test_list_maps_query_aliases(self, client, patch_service):
        find_all = patch_service(user_service, "find_all", return_value={"users": [], "total": 0})

        response = client.get("/users?name=ada&minAge=18&maxAge=40&sortBy=name&sortOrder=desc&page=2&limit=5")

        assert response.status_code == 200
        assert response.json() == {"users": [], "total": 0}
        query = find_all.await_args.args[0]
        assert (query.name, query.min_age, query.max_age) == ("ada", 18, 40)
        assert (query.sort_by, query.sort_order, query.page, query.limit) == ("name", "desc", 2, 5)

    def test_create_returns_201(self, client, patch_service, sample_user):
        patch_service(user_service, "create", return_value=sample_user)

        response = client.post("/users", json={"email": "ada@example.com", "name": "Ada", "age": 36})

        assert response.status_code == 201
        assert response.json()["email"] == "ada@example.com"

    def test_delete_returns_204(self, client, patch_service):
        remove = patch_service(user_service, "remove", return_value=None)

        response = client.delete(f"/users/{USER_ID}")

        assert response.status_code == 204
        assert response.content == b""
        remove.assert_awaited_once()

    def test_with_cars(self, client, patch_service, sample_user, sample_car):
        patch_service(
            user_service,
            "find_one_with_cars",
            return_value={**sample_user, "cars": [sample_car], "car_count": 1},
        )

        response = client.get(f"/users/{USER_ID}/with-cars")

        assert response.json()["car_count"] == 1

    def test_register_with_cars(self, patch_service, sample_user, sample_car, app_with_features):
        client = app_with_features(userRegistrationWithCars=True)
        patch_service(user_service, "register_user_with_cars", return_value={**sample_user, "cars": [sample_car]})

        response = client.post(
            "/users/register-with-cars",
            json={
                "email": "ada@example.com",
                "name": "Ada",
                "cars": [{"brand": "Toyota", "model": "Corolla", "year": 2020, "license_plate": "ABC-123"}],
            },
        )

        assert response.status_code == 201
        assert len(response.json()["cars"]) == 1

    def test_register_with_cars_disabled(self, patch_service, app_with_features):
        client = app_with_features(userRegistrationWithCars=False)
        register = patch_service(user_service, "register_user_with_cars")

        response = client.post(
            "/users/register-with-cars",
            json={"email": "ada@example.com", "name": "Ada", "cars": []},
        )

        assert response.status_code == 403
        register.assert_not_awaited()


class TestCarsApi:
    def test_large_limit_is_accepted(self, client, patch_service):
        find_all = patch_service(car_service, "find_all", return_value={"cars": [], "total": 0})

        response = client.get("/cars?limit=200")

        assert response.status_code == 200
        assert find_all.await_args.args[0].limit == 200

    @pytest.mark.parametrize("params", ["minYear=1899", "page=0", "limit=0"])
    def test_out_of_range_query_is_bad_request(self, client, patch_service, params):
        find_all = patch_service(car_service, "find_all")

        response = client.get(f"/cars?{params}")

        assert response.status_code == 400
        find_all.assert_not_awaited()

    def test_list_maps_query_aliases(self, client, patch_service):
        find_all = patch_service(car_service, "find_all", return_value={"cars": [], "total": 0})

        response = client.get(f"/cars?user_id={USER_ID}&brand=toy&minYear=2015&maxYear=2020&sortBy=year")

        assert response.status_code == 200
        query = find_all.await_args.args[0]
        assert str(query.user_id) == USER_ID
        assert (query.brand, query.min_year, query.max_year, query.sort_by) == ("toy", 2015, 2020, "year")

    def test_search_is_not_parsed_as_an_id(self, client, patch_service, sample_car):
        search = patch_service(car_service, "search", return_value=[sample_car])

        response = client.get("/cars/search/toyota")

        assert response.status_code == 200
        search.assert_awaited_once_with("toyota")

    def test_user_stats(self, client, patch_service):
        patch_service(car_service, "stats_by_user", return_value={"total_cars": 0})

        response = client.get(f"/cars/user/{USER_ID}/stats")

        assert response.json() == {"total_cars": 0}

    def test_delete_by_user(self, client, patch_service):
        patch_service(car_service, "remove_by_user", return_value=3)

        response = client.delete(f"/cars/user/{USER_ID}")

        assert response.json() == {"deleted": 3}

    def test_invalid_plate_is_rejected(self, client):
        response = client.post(
            "/cars",
            json={"user_id": USER_ID, "brand": "Toyota", "model": "Corolla", "year": 2020, "license_plate": "abc 1"},
        )

        assert response.status_code == 400

    def test_future_year_is_rejected(self, client):
        response = client.post(
            "/cars",
            json={"user_id": USER_ID, "brand": "Toyota", "model": "Corolla", "year": 3000, "license_plate": "ABC-123"},
        )

        assert response.status_code == 400

    def test_transfer(self, patch_service, sample_car, app_with_features):
        client = app_with_features(carTransfer=True)
        transfer = patch_service(car_service, "transfer_ownership", return_value={**sample_car, "user_id": OTHER_USER_ID})

        response = client.post(
            "/cars/transfer",
            json={"car_id": CAR_ID, "from_user_id": USER_ID, "to_user_id": OTHER_USER_ID},
        )

        assert response.status_code == 200
        assert response.json()["user_id"] == OTHER_USER_ID
        transfer.assert_awaited_once()

    def test_transfer_disabled(self, patch_service, app_with_features):
        client = app_with_features(carTransfer=False)
        transfer = patch_service(car_service, "transfer_ownership")

        response = client.post(
            "/cars/transfer",
            json={"car_id": CAR_ID, "from_user_id": USER_ID, "to_user_id": OTHER_USER_ID},
        )

        assert response.status_code == 403
        assert response.json()["message"] == "Car transfer is disabled"
        transfer.assert_not_awaited()

    def test_bulk_transfer_requires_car_ids(self, app_with_features):
        client = app_with_features(carTransfer=True)

        response = client.post(
            "/cars/transfer/bulk",
            json={"car_ids": [], "from_user_id": USER_ID, "to_user_id": OTHER_USER_ID},
        )

        assert response.status_code == 400

    def test_bulk_create_disabled(self, app_with_features):
        client = app_with_features(bulkOperations=False)

        response = client.post("/cars/bulk", json=[])

        assert response.status_code == 403
