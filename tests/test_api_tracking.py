"""Route tests for the tracking script endpoints and short-link redirect."""

from datetime import timedelta

from app.timeutils import utcnow


def test_form_requires_page_url(client, store):
    response = client.post("/api/t/form", json={"trackerId": "rckr_abc"})

    assert response.status_code == 400
    assert response.json() == {"error": "pageUrl is required"}
    assert store.attributions == []


def test_form_malformed_body_is_validation_error(client, store):
    response = client.post(
        "/api/t/form", json={"pageUrl": "https://x.example", "phone": {"number": "555"}}
    )

    assert response.status_code == 400
    assert "error" in response.json()
    assert store.attributions == []


def test_form_accepts_non_object_metadata(client, store):
    response = client.post(
        "/api/t/form", json={"pageUrl": "https://x.example", "metadata": "utm=abc"}
    )

    assert response.status_code == 200
    [result] = store.attributions
    assert result.conversion.extra_metadata == "utm=abc"


def test_form_keeps_list_metadata(client, store):
    response = client.post(
        "/api/t/form", json={"pageUrl": "https://x.example", "metadata": ["a", 1]}
    )

    assert response.status_code == 200
    assert store.attributions[0].conversion.extra_metadata == ["a", 1]


def test_form_stringifies_scalar_contact_fields(client, store):
    response = client.post(
        "/api/t/form",
        json={"pageUrl": "https://x.example", "phone": 5551234, "formId": 42, "name": True},
    )

    assert response.status_code == 200
    conversion = store.attributions[0].conversion
    assert conversion.phone == "5551234"
    assert conversion.form_id == "42"
    assert conversion.name == "True"


def test_form_accepts_long_free_text(client, store):
    tracker_id = "rckr_" + "x" * 500

    response = client.post(
        "/api/t/form",
        json={"pageUrl": "https://x.example/" + "p" * 3000, "trackerId": tracker_id},
    )

    assert response.status_code == 200
    assert store.attributions[0].conversion.tracker_id == tracker_id


def test_form_without_match(client, store):
    response = client.post("/api/t/form", json={"pageUrl": "https://shop.example.com/thanks"})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["attributed"] is False
    assert body["confidence"] == 0
    assert body["linkId"] is None
    assert body["id"] == str(store.attributions[0].id)


def test_form_tracker_match(client, store):
    link = store.seed_link()
    now = utcnow()
    store.seed_page_view("rckr_abc", link, now - timedelta(minutes=10))
    store.seed_click(link, now - timedelta(minutes=20))

    response = client.post(
        "/api/t/form",
        json={
            "pageUrl": "https://shop.example.com/thanks",
            "trackerId": "rckr_abc",
            "formName": "Signup",
            "email": "fan@example.com",
        },
    )

    body = response.json()
    assert body["attributed"] is True
    assert body["confidence"] == 0.6
    assert body["linkId"] == str(link.id)
    assert store.attributions[0].conversion.form_name == "Signup"


def test_form_ip_fallback_uses_forwarded_for(client, store):
    link = store.seed_link()
    store.seed_click(link, utcnow() - timedelta(minutes=500), ip_address="203.0.113.7")

    response = client.post(
        "/api/t/form",
        json={"pageUrl": "https://shop.example.com/thanks"},
        headers={"X-Forwarded-For": "203.0.113.7, 10.0.0.1"},
    )

    body = response.json()
    assert body["attributed"] is True
    assert body["confidence"] == 0.25
    assert store.attributions[0].matched_by == ["ip_match"]


def test_form_persistence_failure_is_generic_500(client, store):
    store.fail_writes = True

    response = client.post("/api/t/form", json={"pageUrl": "https://shop.example.com/thanks"})

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to track form conversion"}


def test_pageview_requires_tracker_and_url(client):
    response = client.post("/api/t/pageview", json={"pageUrl": "https://x.example"})

    assert response.status_code == 400
    assert response.json() == {"error": "trackerId and pageUrl are required"}


def test_pageview_recorded(client, store):
    link = store.seed_link()

    response = client.post(
        "/api/t/pageview",
        json={"trackerId": "rckr_abc", "pageUrl": "https://x.example", "linkId": str(link.id)},
        headers={"User-Agent": "Mozilla/5.0 (iPad; CPU OS 16_0 like Mac OS X)"},
    )

    assert response.status_code == 200
    assert response.json()["id"] == str(store.page_views[0].id)
    assert store.page_views[0].device_type == "tablet"


def test_pageview_unknown_link_is_validation_error(client, store):
    response = client.post(
        "/api/t/pageview",
        json={
            "trackerId": "rckr_abc",
            "pageUrl": "https://x.example",
            "linkId": "7d1f6a4e-2b0c-4f7e-9a51-3c2d8e6b1f00",
        },
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Unknown linkId"}
    assert store.page_views == []


def test_track_redirects_and_sets_tracker_cookie(client, store):
    link = store.seed_link(slug="launch")

    response = client.get(
        "/api/track/launch?utm_source=tiktok",
        headers={"X-Real-IP": "203.0.113.9"},
        follow_redirects=False,
    )

    assert response.status_code == 307
    assert response.headers["location"] == link.destination_url
    assert "rckr_id=" in response.headers["set-cookie"]
    [click] = store.clicks
    assert click.ip_address == "203.0.113.9"
    assert click.utm_source == "tiktok"
    assert click.tracker_id in response.headers["set-cookie"]


def test_track_reuses_existing_tracker_cookie(client, store):
    store.seed_link(slug="launch")

    response = client.get(
        "/api/track/launch",
        headers={"Cookie": "rckr_id=rckr_existing"},
        follow_redirects=False,
    )

    assert response.status_code == 307
    assert "set-cookie" not in response.headers
    assert store.clicks[0].tracker_id == "rckr_existing"


def test_track_unknown_slug_is_404(client):
    response = client.get("/api/track/missing", follow_redirects=False)

    assert response.status_code == 404
    assert response.json() == {"error": "Link not found or inactive"}
