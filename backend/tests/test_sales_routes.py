import pytest

from poscore.models import SaleTransaction

from conftest import cash, on_hand, sale_payload, user_headers


def test_requires_user_header(client, db_session, terminal):
    response = client.post('/api/transactions', json={})
    assert response.status_code == 401

    response = client.post('/api/transactions', json={}, headers={'X-User-Id': 'abc'})
    assert response.status_code == 401

    response = client.post('/api/transactions', json={}, headers=user_headers(999999))
    assert response.status_code == 401


def test_create_and_fetch(client, db_session, terminal, cashier, make_product):
    product = make_product("SKU-A", 2500, quantity_on_hand=5, tax_rate_bps=1000)

    response = client.post(
        '/api/transactions',
        json=sale_payload(
            terminal.id,
            [{"product_id": product.id, "quantity": 2, "discount_cents": 500}],
            [cash(4950, received_cents=5000)],
        ),
        headers=user_headers(cashier.id),
    )

    assert response.status_code == 201
    body = response.json["transaction"]
    assert body["status"] == "completed"
    assert body["transaction_number"] == "T001-000001"
    assert body["total_cents"] == 4950
    assert body["cashier_name"] == "cashier"
    assert body["terminal_name"] == "Front Counter 1"
    assert body["completed_at"].endswith("Z")
    assert body["items"][0]["product_snapshot"]["sku"] == "SKU-A"
    assert body["payments"][0]["detail"] == {"cash_received_cents": 5000, "cash_change_cents": 50}

    fetched = client.get(f"/api/transactions/{body['id']}", headers=user_headers(cashier.id))
    assert fetched.status_code == 200
    assert fetched.json["transaction"]["transaction_number"] == "T001-000001"

    by_number = client.get("/api/transactions/by-number/T001-000001", headers=user_headers(cashier.id))
    assert by_number.status_code == 200
    assert by_number.json["transaction"]["id"] == body["id"]


def test_insufficient_stock_maps_to_409(client, db_session, terminal, cashier, make_product):
    product = make_product("SKU-A", 1000, quantity_on_hand=1)

    response = client.post(
        '/api/transactions',
        json=sale_payload(terminal.id, [{"product_id": product.id, "quantity": 2}], [cash(2000)]),
        headers=user_headers(cashier.id),
    )

    assert response.status_code == 409
    assert response.json["code"] == "INSUFFICIENT_STOCK"
    assert response.json["details"] == {"product_id": product.id, "available": 1, "requested": 2}
    assert db_session.query(SaleTransaction).count() == 0


def test_amount_mismatch_maps_to_400(client, db_session, terminal, cashier, make_product):
    product = make_product("SKU-A", 1000, quantity_on_hand=5)

    response = client.post(
        '/api/transactions',
        json=sale_payload(terminal.id, [{"product_id": product.id, "quantity": 1}], [cash(500)]),
        headers=user_headers(cashier.id),
    )

    assert response.status_code == 400
    assert response.json["code"] == "AMOUNT_MISMATCH"
    assert on_hand(product.id) == 5


def test_invalid_body(client, db_session, cashier):
    response = client.post(
        '/api/transactions',
        data="not json",
        content_type="text/plain",
        headers=user_headers(cashier.id),
    )
    assert response.status_code == 400

    response = client.post('/api/transactions', json={"items": []}, headers=user_headers(cashier.id))
    assert response.status_code == 400
    assert response.json["code"] == "INVALID_REQUEST"


def test_not_found(client, db_session, cashier):
    response = client.get('/api/transactions/999999', headers=user_headers(cashier.id))
    assert response.status_code == 404
    assert response.json["code"] == "TRANSACTION_NOT_FOUND"

    response = client.post(
        '/api/transactions',
        json=sale_payload(999999, [{"product_id": 1, "quantity": 1}], [cash(100)]),
        headers=user_headers(cashier.id),
    )
    assert response.status_code == 404
    assert response.json["code"] == "TERMINAL_NOT_FOUND"


def test_void_route(client, db_session, terminal, cashier, manager, make_product):
    product = make_product("SKU-A", 1000, quantity_on_hand=5)
    created = client.post(
        '/api/transactions',
        json=sale_payload(terminal.id, [{"product_id": product.id, "quantity": 2}], [cash(2000)]),
        headers=user_headers(cashier.id),
    )
    sale_id = created.json["transaction"]["id"]

    missing_reason = client.post(f"/api/transactions/{sale_id}/void", json={}, headers=user_headers(manager.id))
    assert missing_reason.status_code == 400

    voided = client.post(
        f"/api/transactions/{sale_id}/void",
        json={"reason": "Customer left"},
        headers=user_headers(manager.id),
    )
    assert voided.status_code == 200
    assert voided.json["transaction"]["status"] == "voided"
    assert voided.json["transaction"]["voided_by_user_id"] == manager.id
    assert on_hand(product.id) == 5

    again = client.post(
        f"/api/transactions/{sale_id}/void",
        json={"reason": "Again"},
        headers=user_headers(manager.id),
    )
    assert again.status_code == 409
    assert again.json["code"] == "INVALID_STATE_TRANSITION"


@pytest.mark.parametrize("body", [["Customer left"], "Customer left", 42])
def test_void_route_rejects_non_object_body(client, db_session, terminal, cashier, manager, make_product, body):
    product = make_product("SKU-A", 1000, quantity_on_hand=5)
    created = client.post(
        '/api/transactions',
        json=sale_payload(terminal.id, [{"product_id": product.id, "quantity": 2}], [cash(2000)]),
        headers=user_headers(cashier.id),
    )
    sale_id = created.json["transaction"]["id"]

    response = client.post(f"/api/transactions/{sale_id}/void", json=body, headers=user_headers(manager.id))

    assert response.status_code == 400
    assert response.json["code"] == "INVALID_REQUEST"
    assert response.json["error"] == "Request body must be a JSON object"
    assert on_hand(product.id) == 3


def test_cors_headers_for_allowed_origin(client, db_session, cashier):
    response = client.get(
        '/api/transactions/1',
        headers={**user_headers(cashier.id), 'Origin': 'http://localhost:5173'},
    )
    assert response.headers.get('Access-Control-Allow-Origin') == 'http://localhost:5173'

    response = client.get(
        '/api/transactions/1',
        headers={**user_headers(cashier.id), 'Origin': 'http://evil.example'},
    )
    assert 'Access-Control-Allow-Origin' not in response.headers
