from __future__ import annotations

import time

from conftest import transparent_png


def _upload_logo(client) -> str:
    r = client.post("/upload", files={"file": ("logo.png", transparent_png((64, 32)), "image/png")})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["contentType"] == "image/png"
    assert body["url"].startswith("http://testserver/files/uploads/")
    return body["url"]


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_upload_requires_a_file(client):
    r = client.post("/upload")
    assert r.status_code == 400
    assert r.json() == {"error": "missing_file"}

    r = client.post("/upload", files={"file": ("empty.png", b"", "image/png")})
    assert r.status_code == 400
    assert r.json() == {"error": "empty_file"}


def test_full_flow_upload_propose_render_save(client, services):
    logo_url = _upload_logo(client)

    r = client.post("/propose", json={"brand": "Acme", "logoUrl": logo_url})
    assert r.status_code == 200, r.text
    body = r.json()
    project_id = body["projectId"]
    assert r.headers["x-project-id"] == project_id
    assert len(body["concepts"]) == 2
    concept = body["concepts"][0]

    rendered = {}
    for c in body["concepts"]:
        r = client.post(
            "/render",
            json={
                "projectId": project_id,
                "conceptId": c["id"],
                "brand": "Acme",
                "promptBase": c["prompt_base"],
                "logoUrl": logo_url,
                "variants": 2,
            },
        )
        assert r.status_code == 200, r.text
        rendered[c["id"]] = r.json()["results"]

    for results in rendered.values():
        assert len(results) == 2
        for item in results:
            assert item["imageUrl"].startswith("http://testserver/files/renders/")
            assert item["thumbnailUrl"].startswith("http://testserver/files/thumbs/")
            assert services.buckets.read_url(item["thumbnailUrl"]).startswith(b"\x89PNG")

    first = rendered[concept["id"]][0]
    assert first["model"] == "fake-masked-guide-edit"
    assert services.buckets.read_url(first["imageUrl"]).startswith(b"\x89PNG")

    r = client.post(
        "/save",
        json={
            "projectId": project_id,
            "conceptId": concept["id"],
            "model": first["model"],
            "imageUrl": first["imageUrl"],
            "thumbnailUrl": first["thumbnailUrl"],
        },
    )
    assert r.status_code == 200, r.text
    render_id = r.json()["renderId"]

    listed = client.get("/renders").json()["renders"]
    assert [x["id"] for x in listed] == [render_id]
    assert listed[0]["projectId"] == project_id

    page = client.get("/gallery")
    assert page.status_code == 200
    assert first["thumbnailUrl"] in page.text


def test_gallery_lists_newest_first_and_hides_private(client):
    ids = []
    for product in ("Mug", "Socks"):
        r = client.post(
            "/save",
            json={"brand": "Acme", "product": product, "model": "fake", "imageUrl": f"http://x/{product}.png"},
        )
        ids.append(r.json()["renderId"])
        time.sleep(0.01)
    client.post(
        "/save",
        json={"brand": "Acme", "product": "Cap", "model": "fake", "imageUrl": "http://x/cap.png", "public": False},
    )
    listed = client.get("/renders").json()["renders"]
    assert [x["id"] for x in listed] == list(reversed(ids))
    assert client.get("/gallery").text.count('class="card"') == 2


def test_propose_with_hint_returns_one_concept(client):
    r = client.post("/propose", json={"brand": "Acme", "product_hint": "hoodie"})
    assert r.status_code == 200
    assert [c["label"] for c in r.json()["concepts"]] == ["hoodie"]


def test_bad_brand_is_400(client):
    r = client.post("/propose", json={"brand": "http://evil.example"})
    assert r.status_code == 400
    assert r.json() == {"error": "Brand cannot be a URL"}


def test_validation_errors_are_400(client):
    r = client.post("/render", json={"brand": "Acme"})
    assert r.status_code == 400
    assert r.json()["error"].startswith("projectId")

    r = client.post("/save", json={"model": "x", "imageUrl": "http://x/a.png"})
    assert r.status_code == 400


def test_unknown_project_is_404(client):
    r = client.post(
        "/render",
        json={"projectId": "nope", "conceptId": "nope", "brand": "Acme", "promptBase": "mug"},
    )
    assert r.status_code == 404
    assert r.json() == {"error": "project_not_found"}


def test_render_failure_reports_details(client, fake_provider):
    project = client.post("/propose", json={"brand": "Acme"}).json()
    concept = project["concepts"][0]
    fake_provider.fail_generate = True
    r = client.post(
        "/render",
        json={
            "projectId": project["projectId"],
            "conceptId": concept["id"],
            "brand": "Acme",
            "promptBase": concept["prompt_base"],
        },
    )
    assert r.status_code == 500
    body = r.json()
    assert body["error"] == "render_failed"
    assert "variant-0" in body["details"]


def test_render_more(client):
    r = client.post("/render-more", json={"brand": "Acme", "product": "Meme Mousepad"})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["product"] == "Meme Mousepad"
    assert body["image"]["model"] == "fake-direct-generation"


def test_rate_limit_kicks_in_after_ten_requests(client):
    headers = {"x-forwarded-for": "203.0.113.9"}
    for _ in range(10):
        assert client.post("/propose", json={"brand": "Acme"}, headers=headers).status_code == 200
    r = client.post("/propose", json={"brand": "Acme"}, headers=headers)
    assert r.status_code == 429
    assert r.json() == {"error": "rate_limit_exceeded"}
    # a different client is unaffected, and /health is not limited
    assert client.post("/propose", json={"brand": "Acme"}, headers={"x-forwarded-for": "203.0.113.10"}).status_code == 200
    assert client.get("/health").status_code == 200


def test_save_rejects_a_lone_id(client):
    base = {"brand": "Acme", "product": "Mug", "model": "m", "imageUrl": "http://x/a.png"}
    r = client.post("/save", json={**base, "projectId": "nope"})
    assert r.status_code == 400
    r = client.post("/save", json={**base, "conceptId": "nope"})
    assert r.status_code == 400
    assert client.get("/renders").json()["renders"] == []


def test_save_checks_every_supplied_id(client):
    project = client.post("/propose", json={"brand": "Acme"}).json()
    other = client.post("/propose", json={"brand": "Other"}).json()
    body = {"model": "m", "imageUrl": "http://x/a.png"}

    r = client.post("/save", json={**body, "projectId": "nope", "conceptId": project["concepts"][0]["id"]})
    assert r.status_code == 404
    assert r.json() == {"error": "project_not_found"}

    # concept belongs to a different project
    r = client.post(
        "/save",
        json={**body, "projectId": project["projectId"], "conceptId": other["concepts"][0]["id"]},
    )
    assert r.status_code == 404
    assert r.json() == {"error": "concept_not_found"}
    assert client.get("/renders").json()["renders"] == []
