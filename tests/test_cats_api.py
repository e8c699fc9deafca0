PEDIGREE = ("sireName", "damName", "sireRegistration", "damRegistration")


async def test_healthz(client):
    response = await client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"ok": True}


async def test_create_kitten_nulls_pedigree(client, admin_headers):
    response = await client.post(
        "/cats",
        json={
            "name": "Milo",
            "gender": "male",
            "type": "kitten",
            "fatherId": 1,
            "motherId": 2,
            "sireName": "King Leo",
        },
        headers=admin_headers,
    )

    assert response.status_code == 201, response.text
    body = response.json()
    assert body["id"] >= 1
    assert body["type"] == "kitten"
    assert body["status"] == "available"
    assert (body["fatherId"], body["motherId"]) == (1, 2)
    for field in PEDIGREE:
        assert body[field] is None


async def test_create_breeder_with_father_is_rejected(client, admin_headers):
    response = await client.post(
        "/cats",
        json={"name": "Luna", "gender": "female", "type": "breeder", "fatherId": 1},
        headers=admin_headers,
    )

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Validation failed"
    assert list(body["details"]) == ["fatherId"]


async def test_create_reports_every_violation(client, admin_headers):
    response = await client.post(
        "/cats",
        json={"name": "", "gender": "cat", "type": "kitten", "birthDate": "2024-06-01T10:00"},
        headers=admin_headers,
    )

    assert response.status_code == 400
    assert set(response.json()["details"]) == {"name", "gender", "birthDate"}


async def test_created_cat_round_trips(client, create_cat):
    created = await create_cat(
        name="Luna",
        gender="female",
        type="breeder",
        birthDate="2021-03-10",
        sireName="Ch. Silver Moon",
        damName="Lady Bella",
    )

    response = await client.get(f"/cats/{created['id']}")

    assert response.status_code == 200
    fetched = response.json()
    assert fetched["photos"] == []
    fetched.pop("photos")
    assert fetched == created
    assert fetched["birthDate"] == "2021-03-10"
    assert fetched["fatherId"] is None


async def test_get_missing_cat(client):
    response = await client.get("/cats/999")
    assert response.status_code == 404
    assert response.json() == {"error": "Cat not found"}


async def test_non_numeric_id_is_a_validation_error(client):
    response = await client.get("/cats/abc")
    assert response.status_code == 400
    assert "cat_id" in response.json()["details"]


async def test_writes_require_a_token(client):
    response = await client.post("/cats", json={"name": "Luna"})
    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"


async def test_writes_reject_a_bad_token(client):
    response = await client.delete("/cats/1", headers={"Authorization": "Bearer nope"})
    assert response.status_code == 401
    assert response.json() == {"error": "Invalid token"}


async def test_writes_require_the_admin_role(client, editor_headers):
    response = await client.post(
        "/cats",
        json={"name": "Luna", "gender": "female", "type": "breeder"},
        headers=editor_headers,
    )
    assert response.status_code == 403


async def test_list_paginates_filters_and_sorts(client, create_cat):
    for name in ("Nala", "Luna", "Simba"):
        await create_cat(name=name, gender="female", type="breeder")
    await create_cat(name="Milo", gender="male", type="kitten", fatherId=1, motherId=2)

    response = await client.get(
        "/cats", params={"type": "breeder", "sort": "name:asc", "limit": 2}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["meta"] == {
        "page": 1,
        "limit": 2,
        "total": 3,
        "totalPages": 2,
        "sort": "name:asc",
        "filters": {"type": "breeder", "status": None, "gender": None},
    }
    assert [cat["name"] for cat in body["data"]] == ["Luna", "Nala"]

    second = (await client.get(
        "/cats", params={"type": "breeder", "sort": "name:asc", "limit": 2, "page": 2}
    )).json()
    assert [cat["name"] for cat in second["data"]] == ["Simba"]


async def test_list_clamps_paging(client, create_cat):
    await create_cat(name="Luna", gender="female", type="breeder")

    body = (await client.get("/cats", params={"limit": 500, "page": 0})).json()

    assert body["meta"]["limit"] == 100
    assert body["meta"]["page"] == 1
    assert body["meta"]["totalPages"] == 1


async def test_list_rejects_malformed_sort(client):
    response = await client.get("/cats", params={"sort": "bogus"})
    assert response.status_code == 400
    assert list(response.json()["details"]) == ["sort"]


async def test_update_cat(client, admin_headers, create_cat):
    cat = await create_cat(name="Luna", gender="female", type="breeder")

    response = await client.put(
        f"/cats/{cat['id']}",
        json={"status": "reserved", "damName": "Lady Bella"},
        headers=admin_headers,
    )

    assert response.status_code == 200, response.text
    body = response.json()
    assert body["status"] == "reserved"
    assert body["damName"] == "Lady Bella"
    assert body["name"] == "Luna"


async def test_update_cannot_change_type(client, admin_headers, create_cat):
    cat = await create_cat(name="Luna", gender="female", type="breeder")

    response = await client.put(
        f"/cats/{cat['id']}", json={"type": "kitten"}, headers=admin_headers
    )

    assert response.status_code == 400
    assert list(response.json()["details"]) == ["type"]


async def test_update_kitten_uses_stored_type(client, admin_headers, create_cat):
    kitten = await create_cat(name="Milo", gender="male", type="kitten", fatherId=1, motherId=2)

    response = await client.put(
        f"/cats/{kitten['id']}", json={"fatherId": 3}, headers=admin_headers
    )

    assert response.status_code == 400
    assert list(response.json()["details"]) == ["motherId"]


async def test_update_missing_cat(client, admin_headers):
    response = await client.put("/cats/42", json={"name": "Ghost"}, headers=admin_headers)
    assert response.status_code == 404


async def test_delete_cat_removes_its_photos(
    client, admin_headers, create_cat, upload_photo, storage
):
    cat = await create_cat(name="Luna", gender="female", type="breeder")
    other = await create_cat(name="Nala", gender="female", type="breeder")
    first = await upload_photo(cat["id"])
    second = await upload_photo(cat["id"])
    await upload_photo(other["id"])

    response = await client.delete(f"/cats/{cat['id']}", headers=admin_headers)

    assert response.status_code == 200
    assert (await client.get(f"/cats/{cat['id']}")).status_code == 404
    remaining = (await client.get("/photos")).json()
    assert remaining["meta"]["total"] == 1
    assert remaining["data"][0]["catId"] == other["id"]
    assert sorted(storage.deleted) == sorted([first["publicId"], second["publicId"]])


async def test_delete_missing_cat(client, admin_headers):
    response = await client.delete("/cats/42", headers=admin_headers)
    assert response.status_code == 404
