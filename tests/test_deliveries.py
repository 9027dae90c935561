from bson import ObjectId


def test_create_delivery_uses_order_driver(client, auth, make_customer, make_restaurant, make_driver, make_order):
    driver_id = make_driver()
    order_id = make_order(
        make_customer(), make_restaurant(), status="assigned", driver_id=driver_id,
        delivery_address={"street": "3 Beach Rd", "city": "Durban", "latitude": -29.85, "longitude": 31.02},
    )
    res = client.post("/api/deliveries", json={"order_id": order_id, "distance": 4.2}, headers=auth)
    assert res.status_code == 201
    data = res.json()["data"]
    assert data["driver_id"] == driver_id
    assert data["status"] == "assigned"
    assert data["distance"] == 4.2
    assert data["delivery_location"] == {"latitude": -29.85, "longitude": 31.02, "address": "3 Beach Rd, Durban"}
    assert data["order"]["status"] == "assigned"
    assert data["driver"]["name"].startswith("Driver")


def test_create_delivery_needs_a_driver(client, auth, make_customer, make_restaurant, make_order):
    order_id = make_order(make_customer(), make_restaurant())
    res = client.post("/api/deliveries", json={"order_id": order_id}, headers=auth)
    assert res.status_code == 400


def test_create_delivery_rejects_non_driver(client, auth, make_customer, make_restaurant, make_order):
    customer_id = make_customer()
    order_id = make_order(customer_id, make_restaurant())
    res = client.post("/api/deliveries", json={"order_id": order_id, "driver_id": customer_id}, headers=auth)
    assert res.status_code == 404


def test_one_delivery_per_order(client, auth, make_customer, make_restaurant, make_driver, make_order):
    driver_id = make_driver()
    order_id = make_order(make_customer(), make_restaurant(), driver_id=driver_id)
    assert client.post("/api/deliveries", json={"order_id": order_id}, headers=auth).status_code == 201
    res = client.post("/api/deliveries", json={"order_id": order_id}, headers=auth)
    assert res.status_code == 400
    assert res.json()["message"] == "A delivery already exists for this order"


def test_list_and_get_deliveries(client, auth, make_customer, make_restaurant, make_driver, make_order,
                                 make_delivery):
    customer_id, restaurant_id = make_customer(), make_restaurant()
    first, second = make_driver(), make_driver()
    make_delivery(make_order(customer_id, restaurant_id), first, status="completed")
    delivery_id = make_delivery(make_order(customer_id, restaurant_id), second, status="ongoing")

    assert client.get("/api/deliveries", headers=auth).json()["count"] == 2
    res = client.get("/api/deliveries", params={"status": "ongoing"}, headers=auth)
    assert [d["id"] for d in res.json()["data"]] == [delivery_id]
    res = client.get("/api/deliveries", params={"driver_id": first}, headers=auth)
    assert res.json()["data"][0]["status"] == "completed"

    res = client.get(f"/api/deliveries/{delivery_id}", headers=auth)
    assert res.json()["data"]["driver_id"] == second
    assert client.get(f"/api/deliveries/{ObjectId()}", headers=auth).status_code == 404
