import pytest

from conftest import make_asset, make_block, make_transaction
from explorer.api.services.records import AssetDescription


def upsert_body(*hashes, fee=1):
    return {
        "transactions": [
            {
                "hash": hash,
                "fee": fee,
                "size": 100,
                "notes": [{"commitment": f"{hash}-note"}],
                "spends": [{"nullifier": f"{hash}-spend"}],
            }
            for hash in hashes
        ]
    }


def test_find_returns_enriched_transaction(client, seeded_store):
    response = client.get("/transactions/find", params={"hash": "abc"})

    assert response.status_code == 200
    body = response.json()
    assert body["hash"] == "abc"
    assert [entry["asset_id"] for entry in body["asset_descriptions"]] == ["a1", "a2"]
    assert "blocks" not in body


def test_find_with_blocks(client, seeded_store):
    response = client.get("/transactions/find", params={"hash": "abc", "with_blocks": "true"})

    assert response.status_code == 200
    assert [block["hash"] for block in response.json()["blocks"]] == ["b1"]


def test_find_unknown_hash_is_not_found(client, store):
    response = client.get("/transactions/find", params={"hash": "missing"})

    assert response.status_code == 404
    assert "missing" in response.json()["detail"]


def test_find_with_missing_asset_fails(client, seeded_store):
    del seeded_store.assets.assets["a2"]

    response = client.get("/transactions/find", params={"hash": "abc"})

    assert response.status_code == 404
    assert "a2" in response.json()["detail"]


def test_find_requires_hash(client, store):
    response = client.get("/transactions/find")

    assert response.status_code == 422
    assert store.transactions.calls == []


def test_list_preserves_store_order(client, store):
    for hash in ["t3", "t1", "t2"]:
        store.transactions.add(make_transaction(hash))

    response = client.get("/transactions")

    assert response.status_code == 200
    body = response.json()
    assert body["object"] == "list"
    assert [item["hash"] for item in body["data"]] == ["t3", "t1", "t2"]


def test_list_filters_by_block_and_search(client, store):
    block = make_block("b1", 1)
    store.transactions.add(make_transaction("aaa1"), blocks=[block])
    store.transactions.add(make_transaction("bbb2"), blocks=[block])
    store.transactions.add(make_transaction("aaa3"))

    response = client.get("/transactions", params={"block_hash": "b1", "search": "AAA", "with_blocks": True})

    data = response.json()["data"]
    assert [item["hash"] for item in data] == ["aaa1"]
    assert data[0]["blocks"][0]["hash"] == "b1"
    assert store.transactions.calls == [("list", "b1", "AAA")]


def test_list_enriches_every_transaction(client, store):
    store.assets.add(make_asset("shared"))
    for hash in ["t1", "t2"]:
        store.transactions.add(make_transaction(hash))
        store.asset_descriptions.add(AssetDescription(hash, 0, "shared", 5))

    response = client.get("/transactions")

    data = response.json()["data"]
    assert [len(item["asset_descriptions"]) for item in data] == [1, 1]
    # One lookup per description, no sharing between transactions
    assert store.assets.lookups == ["shared", "shared"]


def test_list_rejects_invalid_page_size(client, store):
    response = client.get("/transactions", params={"page_size": 1000})

    assert response.status_code == 422
    assert store.transactions.calls == []


def test_bulk_create_requires_api_key(client, store):
    response = client.post("/transactions", json=upsert_body("abc"))

    assert response.status_code == 401
    assert store.transactions.calls == []
    assert store.asset_descriptions.calls == []
    assert store.transactions.transactions == {}


def test_bulk_create_rejects_wrong_api_key(client, store):
    response = client.post(
        "/transactions", json=upsert_body("abc"), headers={"Authorization": "Bearer wrong"}
    )

    assert response.status_code == 401
    assert store.transactions.calls == []


def test_bulk_create_accepts_x_api_key_header(client, store):
    response = client.post("/transactions", json=upsert_body("abc"), headers={"x-api-key": "test-api-key"})

    assert response.status_code == 200


def test_bulk_create_returns_list_in_input_order(client, store, auth_headers):
    response = client.post("/transactions", json=upsert_body("t2", "t1", "t3"), headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["object"] == "list"
    assert [item["hash"] for item in body["data"]] == ["t2", "t1", "t3"]
    assert all("blocks" not in item for item in body["data"])


def test_bulk_create_is_idempotent_by_hash(client, store, auth_headers):
    first = client.post("/transactions", json=upsert_body("abc", fee=1), headers=auth_headers)
    second = client.post("/transactions", json=upsert_body("abc", fee=2), headers=auth_headers)

    assert first.json()["data"][0]["fee"] == "1"
    assert second.json()["data"][0]["fee"] == "2"
    assert list(store.transactions.transactions) == ["abc"]


@pytest.mark.parametrize("field,value", [
    ("fee", -1),
    ("fee", 2**63),
    ("size", 2**32),
    ("expiration", 2**32),
    ("network_version", 2**16),
])
def test_bulk_create_validates_body(client, store, auth_headers, field, value):
    item = {"hash": "abc", "fee": 1, "size": 1}
    item[field] = value

    response = client.post("/transactions", json={"transactions": [item]}, headers=auth_headers)

    assert response.status_code == 422
    assert store.transactions.calls == []


def test_bulk_create_accepts_column_maximums(client, store, auth_headers):
    item = {"hash": "abc", "fee": 2**63 - 1, "size": 2**32 - 1, "expiration": 2**32 - 1, "network_version": 2**16 - 1}

    response = client.post("/transactions", json={"transactions": [item]}, headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["data"][0]["fee"] == str(2**63 - 1)


def test_bulk_create_rejects_empty_batch(client, store, auth_headers):
    response = client.post("/transactions", json={"transactions": []}, headers=auth_headers)

    assert response.status_code == 422


def test_store_failure_is_internal_error(client, store):
    def broken_list(**kwargs):
        raise ConnectionError("clickhouse unavailable")

    store.transactions.list = broken_list

    response = client.get("/transactions")

    assert response.status_code == 500
    assert "clickhouse unavailable" in response.json()["detail"]
