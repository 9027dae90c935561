from bson import ObjectId

from database import MENU_ITEMS


def new_item(restaurant_id, **overrides):
    body = {
        "restaurant_id": restaurant_id,
        "name": "Quarter Kota",
        "description": "Bread, chips, polony and atchar",
        "category": "Specials",
        "price": 45.5,
    }
    body.update(overrides)
    return body


def create_item(client, auth, restaurant_id, **overrides):
    res = client.post("/api/menu", json=new_item(restaurant_id, **overrides), headers=auth)
    assert res.status_code == 201
    return res.json()["data"]


def test_create_menu_item_defaults(client, auth, make_restaurant):
    data = create_item(client, auth, make_restaurant())
    assert data["preparation_time"] == 15
    assert data["spice_level"] == "None"
    assert data["is_available"] is True
    assert data["is_actually_available"] is True
    assert data["is_low_stock"] is False
    assert data["image_url"] is None


def test_create_for_unknown_restaurant(client, auth):
    res = client.post("/api/menu", json=new_item(str(ObjectId())), headers=auth)
    assert res.status_code == 404
    assert res.json()["message"] == "Restaurant not found"


def test_create_validates_fields(client, auth, make_restaurant):
    restaurant_id = make_restaurant()
    for bad in ({"category": "Breakfast"}, {"name": "K"}, {"price": -1}):
        res = client.post("/api/menu", json=new_item(restaurant_id, **bad), headers=auth)
        assert res.status_code == 400, bad


def test_list_sorted_and_filtered(client, auth, make_restaurant):
    restaurant_id = make_restaurant()
    create_item(client, auth, restaurant_id, name="Lemonade", category="Beverages")
    create_item(client, auth, restaurant_id, name="Chips", category="Sides", is_available=False)
    create_item(client, auth, restaurant_id, name="Cola", category="Beverages")

    res = client.get(f"/api/menu/restaurant/{restaurant_id}", headers=auth)
    assert [i["name"] for i in res.json()["data"]] == ["Cola", "Lemonade", "Chips"]

    res = client.get(f"/api/menu/restaurant/{restaurant_id}", params={"available": "false"}, headers=auth)
    assert [i["name"] for i in res.json()["data"]] == ["Chips"]

    res = client.get(f"/api/menu/restaurant/{restaurant_id}", params={"category": "Beverages"}, headers=auth)
    assert res.json()["count"] == 2


def test_update_item(client, auth, make_restaurant):
    item = create_item(client, auth, make_restaurant())
    res = client.put(f"/api/menu/{item['id']}", json={"price": 50, "spice_level": "Hot"}, headers=auth)
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["price"] == 50
    assert data["spice_level"] == "Hot"
    assert data["name"] == "Quarter Kota"


def test_item_stays_with_its_restaurant(client, db, auth, make_restaurant):
    owner = make_restaurant()
    other = make_restaurant(name="Other Place")
    item = create_item(client, auth, owner)
    res = client.put(f"/api/menu/{item['id']}", json={"restaurant_id": other, "price": 1}, headers=auth)
    assert res.status_code == 200
    stored = db[MENU_ITEMS].find_one({"_id": ObjectId(item["id"])})
    assert stored["restaurant_id"] == owner
    assert stored["price"] == 1


def test_toggle_availability(client, auth, make_restaurant):
    item = create_item(client, auth, make_restaurant())
    res = client.patch(f"/api/menu/{item['id']}/toggle-availability", headers=auth)
    assert res.json()["data"]["is_available"] is False
    res = client.patch(f"/api/menu/{item['id']}/toggle-availability", headers=auth)
    assert res.json()["data"]["is_available"] is True


def test_stock_running_out_disables_item(client, db, auth, make_restaurant):
    item = create_item(client, auth, make_restaurant())
    url = f"/api/menu/{item['id']}/stock"

    res = client.patch(url, json={"track_stock": True, "operation": "set", "quantity": 3}, headers=auth)
    data = res.json()["data"]
    assert data["stock_management"]["current_stock"] == 3
    assert data["is_low_stock"] is True

    res = client.patch(url, json={"operation": "subtract", "quantity": 5}, headers=auth)
    data = res.json()["data"]
    assert data["stock_management"]["current_stock"] == 0
    assert data["stock_management"]["is_out_of_stock"] is True
    assert data["is_available"] is False
    assert data["is_actually_available"] is False

    # restocking does not switch the item back on
    res = client.patch(url, json={"operation": "add", "quantity": 10}, headers=auth)
    data = res.json()["data"]
    assert data["stock_management"]["is_out_of_stock"] is False
    assert data["is_available"] is False

    stored = db[MENU_ITEMS].find_one({"_id": ObjectId(item["id"])})
    assert stored["stock_management"]["current_stock"] == 10


def test_toggle_cannot_enable_sold_out_item(client, auth, make_restaurant):
    item = create_item(client, auth, make_restaurant(),
                       stock_management={"track_stock": True, "current_stock": 0})
    assert item["is_available"] is False
    res = client.patch(f"/api/menu/{item['id']}/toggle-availability", headers=auth)
    assert res.json()["data"]["is_available"] is False


def test_stock_rejects_unknown_operation(client, auth, make_restaurant):
    item = create_item(client, auth, make_restaurant())
    res = client.patch(f"/api/menu/{item['id']}/stock",
                       json={"track_stock": True, "operation": "double", "quantity": 2}, headers=auth)
    assert res.status_code == 400


def test_upload_and_delete_image(client, db, auth, storage, make_restaurant):
    item = create_item(client, auth, make_restaurant())
    res = client.post(f"/api/menu/{item['id']}/image",
                      files={"image": ("kota.jpg", b"\xff\xd8jpeg", "image/jpeg")}, headers=auth)
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["image"]["storage_id"] == "menu-items/1"
    assert data["image"]["filename"] == "kota.jpg"
    assert data["image_url"].endswith("menu-items/1.jpg")

    res = client.delete(f"/api/menu/{item['id']}", headers=auth)
    assert res.status_code == 200
    assert storage.deleted == ["menu-items/1"]
    assert db[MENU_ITEMS].count_documents({}) == 0


def test_failed_reupload_keeps_current_image(client, auth, storage, make_restaurant):
    item = create_item(client, auth, make_restaurant())
    url = f"/api/menu/{item['id']}/image"
    client.post(url, files={"image": ("a.jpg", b"\xff\xd8a", "image/jpeg")}, headers=auth)

    storage.fail_upload = True
    res = client.post(url, files={"image": ("b.jpg", b"\xff\xd8b", "image/jpeg")}, headers=auth)
    assert res.status_code == 502
    assert storage.deleted == []
    res = client.get(f"/api/menu/{item['id']}", headers=auth)
    assert res.json()["data"]["image"]["storage_id"] == "menu-items/1"


def test_get_missing_item(client, auth):
    res = client.get(f"/api/menu/{ObjectId()}", headers=auth)
    assert res.status_code == 404
