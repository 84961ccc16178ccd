from conftest import make_asset


def test_find_asset(client, store):
    store.assets.add(make_asset("a1", name="Iron"))

    response = client.get("/assets/find", params={"id": "a1"})

    assert response.status_code == 200
    assert response.json()["name"] == "Iron"
    assert response.json()["object"] == "asset"


def test_find_unknown_asset_is_not_found(client, store):
    response = client.get("/assets/find", params={"id": "nope"})

    assert response.status_code == 404


def test_list_assets_with_search(client, store):
    store.assets.add(make_asset("a1", name="Gold"))
    store.assets.add(make_asset("a2", name="Silver"))
    store.assets.add(make_asset("a3", name="Golden Coin"))

    response = client.get("/assets", params={"search": "gold"})

    body = response.json()
    assert body["object"] == "list"
    assert [item["identifier"] for item in body["data"]] == ["a1", "a3"]


def test_list_assets_paginates(client, store):
    for index in range(5):
        store.assets.add(make_asset(f"a{index}", name=f"asset {index}"))

    response = client.get("/assets", params={"page": 2, "page_size": 2})

    assert [item["identifier"] for item in response.json()["data"]] == ["a2", "a3"]
