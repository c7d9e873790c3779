MISSING_ID = "00000000-0000-0000-0000-000000000000"


def _create_plot(client, headers, name="Plot A", area=25.5, **extra):
    r = client.post("/plots", json={"name": name, "area": area, **extra}, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()


def _create_harvest(client, headers, plot_id, date="2025-09-10", kg=12.5, quality=None):
    body = {"plotId": plot_id, "date": date, "weightKg": kg}
    if quality:
        body["quality"] = quality
    r = client.post("/harvests", json=body, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()


# ---------- access pipeline ----------
def test_missing_token_is_401_without_provider_call(client, identity):
    r = client.get("/plots")
    assert r.status_code == 401
    assert r.json() == {"detail": "Missing Bearer token"}
    assert identity.calls == []


def test_non_bearer_scheme_is_401(client, identity):
    r = client.get("/plots", headers={"Authorization": "Basic admin-token"})
    assert r.status_code == 401
    assert identity.calls == []


def test_invalid_token_is_401(client):
    r = client.get("/plots", headers={"Authorization": "Bearer forged"})
    assert r.status_code == 401


def test_user_role_cannot_write(client, user_headers):
    r = client.post("/plots", json={"name": "X", "area": 1}, headers=user_headers)
    assert r.status_code == 403
    assert r.json()["detail"] == "Insufficient role"


def test_user_without_metadata_reads_as_user(client):
    r = client.get("/plots", headers={"Authorization": "Bearer bare-token"})
    assert r.status_code == 200
    assert r.json() == []


# ---------- plots ----------
def test_plot_crud(client, admin_headers, user_headers):
    plot = _create_plot(client, admin_headers, plantingStart="2025-09-01")
    assert plot["name"] == "Plot A"
    assert plot["area"] == 25.5
    assert plot["plantingStart"] == "2025-09-01"

    r = client.get(f"/plots/{plot['id']}", headers=user_headers)
    assert r.status_code == 200
    assert r.json() == plot

    r = client.patch(f"/plots/{plot['id']}", json={"area": 30}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["area"] == 30
    assert r.json()["name"] == "Plot A"

    r = client.delete(f"/plots/{plot['id']}", headers=admin_headers)
    assert r.status_code == 200
    assert r.json() == {"ok": True}

    assert client.get(f"/plots/{plot['id']}", headers=user_headers).status_code == 404
    assert client.delete(f"/plots/{plot['id']}", headers=admin_headers).status_code == 404


def test_list_plots_sorted(client, admin_headers, user_headers):
    for name in ("Zucchini", "Basil"):
        _create_plot(client, admin_headers, name=name)
    r = client.get("/plots", headers=user_headers)
    assert [p["name"] for p in r.json()] == ["Basil", "Zucchini"]


def test_plot_validation_is_400(client, admin_headers):
    for body in ({"name": "X", "area": 0}, {"name": "X", "area": -2}, {"area": 3}, {"name": "X", "area": 1, "plantingStart": "soon"}):
        r = client.post("/plots", json=body, headers=admin_headers)
        assert r.status_code == 400, body
    assert client.get("/plots", headers=admin_headers).json() == []


def test_duplicate_plot_name_is_400(client, admin_headers):
    _create_plot(client, admin_headers)
    r = client.post("/plots", json={"name": "Plot A", "area": 2}, headers=admin_headers)
    assert r.status_code == 400
    assert len(client.get("/plots", headers=admin_headers).json()) == 1


def test_patch_rejects_null_name(client, admin_headers):
    plot = _create_plot(client, admin_headers)
    r = client.patch(f"/plots/{plot['id']}", json={"name": None}, headers=admin_headers)
    assert r.status_code == 400


def test_patch_missing_plot_is_404(client, admin_headers):
    r = client.patch(f"/plots/{MISSING_ID}", json={"area": 3}, headers=admin_headers)
    assert r.status_code == 404


def test_summary(client, admin_headers, user_headers):
    plot = _create_plot(client, admin_headers)
    r = client.get(f"/plots/{plot['id']}/summary", headers=user_headers)
    assert r.json() == {"plotId": plot["id"], "totalKg": 0}
    assert isinstance(r.json()["totalKg"], (int, float))

    _create_harvest(client, admin_headers, plot["id"], kg=12.5)
    r = client.get(f"/plots/{plot['id']}/summary", headers=user_headers)
    assert r.json() == {"plotId": plot["id"], "totalKg": 12.5}


# ---------- harvests ----------
def test_create_harvest_returns_plot(client, admin_headers):
    plot = _create_plot(client, admin_headers)
    h = _create_harvest(client, admin_headers, plot["id"], quality="A")
    assert h["plotId"] == plot["id"]
    assert h["plot"]["name"] == "Plot A"
    assert h["weightKg"] == 12.5
    assert h["quality"] == "A"


def test_create_harvest_unknown_plot_is_404(client, admin_headers):
    r = client.post("/harvests", json={"plotId": MISSING_ID, "date": "2025-09-10", "weightKg": 1}, headers=admin_headers)
    assert r.status_code == 404
    assert client.get("/harvests", headers=admin_headers).json() == []


def test_create_harvest_validation(client, admin_headers):
    plot = _create_plot(client, admin_headers)
    bad = [
        {"plotId": plot["id"], "date": "2025-09-10", "weightKg": 0},
        {"plotId": plot["id"], "date": "not-a-date", "weightKg": 1},
        {"plotId": "short", "date": "2025-09-10", "weightKg": 1},
    ]
    for body in bad:
        assert client.post("/harvests", json=body, headers=admin_headers).status_code == 400, body


def test_harvest_listing_and_cascade(client, admin_headers, user_headers):
    a = _create_plot(client, admin_headers, name="A")
    b = _create_plot(client, admin_headers, name="B")
    _create_harvest(client, admin_headers, a["id"], date="2025-09-01")
    _create_harvest(client, admin_headers, b["id"], date="2025-09-20")
    _create_harvest(client, admin_headers, a["id"], date="2025-09-15")

    dates = [h["date"] for h in client.get("/harvests", headers=user_headers).json()]
    assert dates == ["2025-09-20", "2025-09-15", "2025-09-01"]

    by_a = client.get(f"/harvests/plot/{a['id']}", headers=user_headers).json()
    assert [h["date"] for h in by_a] == ["2025-09-15", "2025-09-01"]

    client.delete(f"/plots/{a['id']}", headers=admin_headers)
    assert client.get(f"/harvests/plot/{a['id']}", headers=user_headers).json() == []
    assert len(client.get("/harvests", headers=user_headers).json()) == 1


def test_user_cannot_record_harvest(client, admin_headers, user_headers):
    plot = _create_plot(client, admin_headers)
    r = client.post("/harvests", json={"plotId": plot["id"], "date": "2025-09-10", "weightKg": 1}, headers=user_headers)
    assert r.status_code == 403


def test_plot_area_must_fit_numeric_column(client, admin_headers):
    for area in (0.001, 1e12, 12.345):
        r = client.post("/plots", json={"name": "X", "area": area}, headers=admin_headers)
        assert r.status_code == 400, area
    assert client.get("/plots", headers=admin_headers).json() == []
    assert client.post("/plots", json={"name": "X", "area": 99999999.99}, headers=admin_headers).status_code == 201


def test_patch_area_must_fit_numeric_column(client, admin_headers):
    plot = _create_plot(client, admin_headers)
    for area in (0.005, 1e12):
        r = client.patch(f"/plots/{plot['id']}", json={"area": area}, headers=admin_headers)
        assert r.status_code == 400, area
    assert client.get(f"/plots/{plot['id']}", headers=admin_headers).json()["area"] == 25.5


def test_harvest_weight_must_fit_numeric_column(client, admin_headers):
    plot = _create_plot(client, admin_headers)
    for kg in (0.001, 1e12, 1.234):
        body = {"plotId": plot["id"], "date": "2025-09-10", "weightKg": kg}
        assert client.post("/harvests", json=body, headers=admin_headers).status_code == 400, kg
    assert client.get("/harvests", headers=admin_headers).json() == []
    _create_harvest(client, admin_headers, plot["id"], kg=0.01)


def test_patch_null_planting_start_clears_it(client, admin_headers):
    plot = _create_plot(client, admin_headers, plantingStart="2025-09-01")
    r = client.patch(f"/plots/{plot['id']}", json={"plantingStart": None}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["plantingStart"] is None
    assert r.json()["area"] == 25.5
    got = client.get(f"/plots/{plot['id']}", headers=admin_headers).json()
    assert got["plantingStart"] is None
