# test_api_flow_e2e.py
def jprint(step, r):
    """Helper to print response and assert on failure."""
    assert 200 <= r.status_code < 300, f"{step} -> {r.status_code}: {r.text}"
    return r.json() if r.headers.get("content-type", "").startswith("application/json") else r.text


def _table(client, auth_headers, number):
    r = client.get("/dining/tables", headers=auth_headers)
    return next(t for t in jprint("GET /dining/tables", r) if t["number"] == number)


def test_day_of_service(client, auth_headers):
    # ===== 1. Floor plan from bootstrap =====
    tables = jprint("GET /dining/tables", client.get("/dining/tables", headers=auth_headers))
    assert len(tables) == 18
    assert {t["floor"] for t in tables if t["capacity"] == 4} == {"GROUND"}
    t1 = _table(client, auth_headers, "T1")

    # ===== 2. Inventory & Menu =====
    for name, qty, cat in (("Duck", 2, "MEAT"), ("Rice", 20, "DRY_GOODS"), ("Scallion", 10, "VEGETABLE")):
        r = client.post("/inventory/ingredients", headers=auth_headers,
                        json={"name": name, "quantity": qty, "category": cat, "threshold": 1})
        jprint(f"POST /inventory/ingredients ({name})", r)

    r = client.post("/inventory/ingredients", headers=auth_headers, json={"name": "Duck"})
    assert r.status_code == 409

    r = client.post("/menu/items", headers=auth_headers, json={
        "name": "Roast Duck", "price": 250, "category": "Main", "ingredients": ["Duck"], "daily_stock": 5,
    })
    duck_id = jprint("POST /menu/items (Roast Duck)", r)["id"]
    r = client.post("/menu/items", headers=auth_headers, json={
        "name": "Fried Rice", "price": 120, "category": "Main", "ingredients": ["Rice", "Scallion"],
    })
    rice_id = jprint("POST /menu/items (Fried Rice)", r)["id"]

    # ===== 3. Open the store =====
    r = client.post("/store/open", headers=auth_headers, json={"quotas": [
        {"menu_item_id": duck_id, "is_available": True},
        {"menu_item_id": rice_id, "is_available": True, "daily_stock": -1},
    ]})
    jprint("POST /store/open", r)
    items = {m["name"]: m for m in jprint("GET /menu/items", client.get("/menu/items", headers=auth_headers))}
    assert items["Roast Duck"]["daily_stock"] == 2
    assert items["Fried Rice"]["daily_stock"] == -1

    # ===== 4. Order, reject, kitchen flow =====
    r = client.post("/orders/", headers=auth_headers, json={
        "table_id": t1["id"], "customer_name": "Ann", "box_count": 1,
        "items": [{"menu_item_id": duck_id, "quantity": 2}, {"menu_item_id": rice_id, "quantity": 1}],
    })
    order = jprint("POST /orders/", r)
    assert order["status"] == "PENDING"
    assert order["total_amount"] == 250 * 2 + 120 + 100

    r = client.post("/orders/", headers=auth_headers, json={
        "table_id": _table(client, auth_headers, "T2")["id"], "customer_name": "Bob",
        "items": [{"menu_item_id": duck_id, "quantity": 1}],
    })
    assert r.status_code == 409
    assert r.json()["code"] == "insufficient_quota"

    r = client.post("/orders/", headers=auth_headers, json={
        "table_id": t1["id"], "customer_name": "Bob", "items": [{"menu_item_id": rice_id, "quantity": 1}],
    })
    assert r.status_code == 400
    assert r.json()["code"] == "table_occupied"

    r = client.post("/orders/", headers=auth_headers, json={"table_id": t1["id"], "customer_name": "X", "items": []})
    assert r.status_code == 400

    kitchen = jprint("GET /orders/kitchen", client.get("/orders/kitchen", headers=auth_headers))
    assert [o["id"] for o in kitchen] == [order["id"]]

    r = client.post(f"/orders/{order['id']}/advance", headers=auth_headers, json={"status": "COOKING"})
    assert jprint("advance COOKING", r)["chef_name"] == "Owner"
    r = client.post(f"/orders/{order['id']}/items/0/toggle_cooked", headers=auth_headers)
    assert jprint("toggle_cooked", r)["is_cooked"] is True
    r = client.post(f"/orders/{order['id']}/items/5/toggle_cooked", headers=auth_headers)
    assert r.status_code == 400
    r = client.post(f"/orders/{order['id']}/advance", headers=auth_headers, json={"status": "PENDING"})
    assert r.status_code == 409
    assert r.json()["code"] == "invalid_transition"

    # ===== 5. Check bill & settle =====
    jprint("check_bill", client.post(f"/dining/tables/{t1['id']}/check_bill", headers=auth_headers))
    r = client.post(f"/dining/tables/{t1['id']}/settle", headers=auth_headers, json={"payment_method": "CARD"})
    settled = jprint("settle", r)
    assert settled["status"] == "COMPLETED"
    assert _table(client, auth_headers, "T1")["current_order_id"] is None

    # ===== 6. Restock lifts the quota =====
    r = client.post("/inventory/ingredients/Duck/credit", headers=auth_headers, json={"amount": 4})
    body = jprint("credit Duck", r)
    assert body["ingredient"]["quantity"] == 4
    assert body["menu_items_raised"] == [{"id": duck_id, "name": "Roast Duck", "daily_stock": 4}]

    # ===== 7. Cancel with a drifted catalog =====
    r = client.post("/orders/", headers=auth_headers, json={
        "table_id": t1["id"], "customer_name": "Cy", "items": [{"menu_item_id": rice_id, "quantity": 2}],
    })
    cy = jprint("POST /orders/ (Cy)", r)
    jprint("DELETE Scallion", client.delete("/inventory/ingredients/Scallion", headers=auth_headers))
    r = client.post(f"/orders/{cy['id']}/cancel", headers=auth_headers, json={"reason": "left"})
    cancelled = jprint("cancel", r)
    assert cancelled["status"] == "CANCELLED"
    assert cancelled["restock_warning"]["missing_ingredients"] == ["Scallion"]

    # ===== 8. Close the store =====
    closed = jprint("POST /store/close", client.post("/store/close", headers=auth_headers))
    assert closed["order_count"] == 2
    assert closed["total_sales"] == 720.0
    assert jprint("GET /store/session", client.get("/store/session", headers=auth_headers)) == {"open": False}

    history = jprint("GET /orders/", client.get("/orders/", headers=auth_headers, params={"status": "CANCELLED"}))
    assert [o["id"] for o in history] == [cy["id"]]

    feed = jprint("GET /sync/pull", client.get("/sync/pull", headers=auth_headers))
    assert any(e["entity"] == "order" and e["entity_id"] == cy["id"] for e in feed["events"])


def test_auth_and_roles(client, auth_headers):
    assert client.get("/orders/").status_code == 401
    assert client.get("/orders/", headers={"Authorization": "Bearer junk"}).status_code == 401
    assert client.post("/auth/login", json={"username": "owner", "password": "wrong"}).status_code == 401

    jprint("POST /staff/positions", client.post("/staff/positions", headers=auth_headers, json={"name": "Head Chef"}))
    r = client.post("/staff/", headers=auth_headers, json={
        "username": "li", "name": "Chef Li", "password": "wok123", "role": "CHEF", "position": "Head Chef",
    })
    li = jprint("POST /staff/", r)

    r = client.post("/auth/login", json={"username": "li", "password": "wok123"})
    chef = {"Authorization": f"Bearer {jprint('login li', r)['access_token']}"}
    assert client.get("/staff/", headers=chef).status_code == 403
    assert client.post("/store/open", headers=chef, json={"quotas": []}).status_code == 403
    assert client.get("/orders/kitchen", headers=chef).status_code == 200

    jprint("terminate", client.post(f"/staff/{li['id']}/terminate", headers=auth_headers))
    assert client.post("/auth/login", json={"username": "li", "password": "wok123"}).status_code == 403
    assert client.get("/orders/kitchen", headers=chef).status_code == 403


def test_manual_table_status(client, auth_headers):
    t2 = _table(client, auth_headers, "T2")
    r = client.post(f"/dining/tables/{t2['id']}/status", headers=auth_headers, json={"status": "RESERVED"})
    assert jprint("reserve", r)["status"] == "RESERVED"
    r = client.post(f"/dining/tables/{t2['id']}/status", headers=auth_headers, json={"status": "OCCUPIED"})
    assert r.status_code == 422
    assert client.get("/orders/nope", headers=auth_headers).status_code == 404


def _login(client, username, password):
    r = client.post("/auth/login", json={"username": username, "password": password})
    return {"Authorization": f"Bearer {jprint(f'login {username}', r)['access_token']}"}


def _names(rows):
    return [p["name"] for p in rows]


def test_position_catalogue(client, auth_headers):
    rows = jprint("GET /staff/positions", client.get("/staff/positions", headers=auth_headers))
    assert _names(rows) == ["Admin", "Co-CEO", "CEO", "Manager", "Fulltime", "Parttime"]

    # add, reorder
    r = client.post("/staff/positions", headers=auth_headers, json={"name": "Sous Chef"})
    assert jprint("POST /staff/positions", r)["sort_order"] == 6
    assert client.post("/staff/positions", headers=auth_headers, json={"name": "Sous Chef"}).status_code == 400
    r = client.post("/staff/positions/Sous Chef/move", headers=auth_headers, params={"direction": "up"})
    assert _names(jprint("move up", r))[-2:] == ["Sous Chef", "Parttime"]
    r = client.post("/staff/positions/Admin/move", headers=auth_headers, params={"direction": "up"})
    assert _names(jprint("move past the top", r))[0] == "Admin"
    r = client.post("/staff/positions/Admin/move", headers=auth_headers, params={"direction": "sideways"})
    assert r.status_code == 422
    assert client.post("/staff/positions/Nobody/move", headers=auth_headers,
                       params={"direction": "down"}).status_code == 404

    # hiring checks the catalogue and derives the role from it
    r = client.post("/staff/", headers=auth_headers, json={
        "username": "mia", "name": "Mia", "password": "pass1", "position": "Manager",
    })
    assert jprint("hire manager", r)["role"] == "OWNER"
    r = client.post("/staff/", headers=auth_headers, json={
        "username": "fay", "name": "Fay", "password": "pass1", "position": "Fulltime",
    })
    assert jprint("hire fulltime", r)["role"] == "STAFF"
    r = client.post("/staff/", headers=auth_headers, json={
        "username": "pat", "name": "Pat", "password": "pass1", "position": "Parttime",
    })
    pat = jprint("hire parttime", r)
    r = client.post("/staff/", headers=auth_headers, json={
        "username": "zed", "name": "Zed", "password": "pass1", "position": "Astronaut",
    })
    assert r.status_code == 400
    r = client.patch(f"/staff/{pat['id']}", headers=auth_headers, json={"position": "Astronaut"})
    assert r.status_code == 400

    # store access follows the position
    fay = _login(client, "fay", "pass1")
    assert client.post("/store/open", headers=fay, json={"quotas": []}).status_code == 400
    part = _login(client, "pat", "pass1")
    assert client.post("/store/open", headers=part, json={"quotas": []}).status_code == 403
    assert client.post("/staff/positions", headers=fay, json={"name": "Host"}).status_code == 403

    # removal
    jprint("DELETE /staff/positions/Parttime", client.delete("/staff/positions/Parttime", headers=auth_headers))
    assert client.delete("/staff/positions/Parttime", headers=auth_headers).status_code == 404
    rows = jprint("GET /staff/positions", client.get("/staff/positions", headers=auth_headers))
    assert "Parttime" not in _names(rows)
    r = client.post("/staff/", headers=auth_headers, json={
        "username": "kim", "name": "Kim", "password": "pass1", "position": "Parttime",
    })
    assert r.status_code == 400
