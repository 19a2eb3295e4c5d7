from ticket_scanner.core.config import settings
from ticket_scanner.services.files import to_data_url

MISSING = "2020-01-01T00-00-00_deadbeef"


def test_session_lifecycle(client):
    r = client.post("/api/sessions")
    assert r.status_code == 200
    session_id = r.json()["sessionId"]

    r = client.get("/api/sessions")
    assert r.status_code == 200
    sessions = r.json()["sessions"]
    assert [s["id"] for s in sessions] == [session_id]
    assert sessions[0]["files"] == {"originals": 0, "extracted": 0, "converted": 0}
    assert "created" in sessions[0] and "modified" in sessions[0]

    r = client.get(f"/api/sessions/{session_id}")
    assert r.status_code == 200
    assert r.json() == {"id": session_id, "files": {"originals": [], "extracted": [], "converted": []}}

    r = client.delete(f"/api/sessions/{session_id}")
    assert r.status_code == 200
    assert r.json() == {"success": True}

    r = client.get(f"/api/sessions/{session_id}")
    assert r.status_code == 404


def test_missing_session_is_404(client):
    assert client.get(f"/api/sessions/{MISSING}").json() == {"error": "Session not found"}
    r = client.delete(f"/api/sessions/{MISSING}")
    assert r.status_code == 404
    assert r.json() == {"error": "Session not found"}


def test_upload_files(client, session_id, make_image, make_zip):
    archive = make_zip({"t1.jpg": b"jpg", "readme.txt": b"hi"})
    files = [
        ("files", ("ticket one.png", make_image(), "image/png")),
        ("files", ("notes.txt", b"ignored", "text/plain")),
        ("files", ("batch.zip", archive, "application/zip")),
    ]

    r = client.post(f"/api/sessions/{session_id}/upload", files=files)

    assert r.status_code == 200
    stored = r.json()["files"]
    assert [f["name"] for f in stored] == ["ticket_one.png", "batch.zip", "t1.jpg"]
    assert stored[0]["url"] == f"/uploads/{session_id}/originals/ticket_one.png"
    assert stored[0]["mimeType"] == "image/png"
    assert "source" not in stored[0]
    assert stored[2]["source"] == "batch.zip"
    assert stored[2]["url"] == f"/uploads/{session_id}/extracted/t1.jpg"

    details = client.get(f"/api/sessions/{session_id}").json()
    assert [f["name"] for f in details["files"]["originals"]] == ["batch.zip", "ticket_one.png"]
    assert [f["name"] for f in details["files"]["extracted"]] == ["t1.jpg"]


def test_upload_only_unsupported_files_returns_empty_list(client, session_id):
    r = client.post(f"/api/sessions/{session_id}/upload", files=[("files", ("a.txt", b"x", "text/plain"))])
    assert r.status_code == 200
    assert r.json() == {"files": []}


def test_upload_without_files_is_400(client, session_id):
    r = client.post(f"/api/sessions/{session_id}/upload")
    assert r.status_code == 400
    assert r.json() == {"error": "No files uploaded"}


def test_upload_to_missing_session_is_404(client):
    r = client.post(f"/api/sessions/{MISSING}/upload", files=[("files", ("a.png", b"x", "image/png"))])
    assert r.status_code == 404


def test_upload_too_many_files_is_400(client, session_id, monkeypatch):
    monkeypatch.setattr(settings, "max_upload_files", 2)
    files = [("files", (f"{i}.png", b"x", "image/png")) for i in range(3)]
    r = client.post(f"/api/sessions/{session_id}/upload", files=files)
    assert r.status_code == 400
    assert "Too many files" in r.json()["error"]


def test_upload_corrupt_zip_is_500(client, session_id):
    r = client.post(f"/api/sessions/{session_id}/upload", files=[("files", ("bad.zip", b"nope", "application/zip"))])
    assert r.status_code == 500
    assert "Failed to extract ZIP file" in r.json()["error"]
    details = client.get(f"/api/sessions/{session_id}").json()
    assert details["files"]["originals"] == []


def test_save_converted_images(client, session_id, make_image):
    png = make_image()
    body = {
        "images": [
            {"name": "scan_page1.png", "dataUrl": to_data_url(png, "image/png")},
            {"name": "scan_page2.png", "dataUrl": "garbage"},
        ]
    }

    r = client.post(f"/api/sessions/{session_id}/converted", json=body)

    assert r.status_code == 200
    assert [f["url"] for f in r.json()["files"]] == [f"/uploads/{session_id}/converted/scan_page1.png"]


def test_save_converted_requires_images(client, session_id):
    r = client.post(f"/api/sessions/{session_id}/converted", json={"images": []})
    assert r.status_code == 400
    r = client.post(f"/api/sessions/{MISSING}/converted", json={"images": [{"name": "a.png", "dataUrl": "x"}]})
    assert r.status_code == 404


def test_stored_files_are_served(client, store, session_id, make_image):
    png = make_image()
    stored = store.store_file(session_id, "originals", "ticket.png", png)

    r = client.get(stored.url)

    assert r.status_code == 200
    assert r.headers["content-type"] == "image/png"
    assert r.content == png
    assert client.get(f"/uploads/{session_id}/originals/missing.png").status_code == 404
    assert client.get(f"/uploads/{session_id}/secrets/ticket.png").status_code == 404


def test_orient_endpoint(client, store, session_id, vision, make_image):
    stored = store.store_file(session_id, "converted", "page.png", make_image())
    vision.replies = ["180"]

    r = client.post(f"/api/sessions/{session_id}/orient", json={"imageUrl": stored.url})

    assert r.status_code == 200
    assert r.json() == {
        "rotated": 180,
        "url": f"/uploads/{session_id}/converted/page_oriented.png",
        "originalUrl": stored.url,
    }


def test_orient_endpoint_upright(client, store, session_id, vision, make_image):
    stored = store.store_file(session_id, "converted", "page.png", make_image())
    vision.replies = ["0"]

    r = client.post(f"/api/sessions/{session_id}/orient", json={"imageUrl": stored.url})

    assert r.json() == {"rotated": 0, "url": stored.url}


def test_orient_endpoint_errors(client, session_id):
    assert client.post(f"/api/sessions/{session_id}/orient", json={}).status_code == 400
    r = client.post(f"/api/sessions/{session_id}/orient", json={"imageUrl": f"/uploads/{session_id}/originals/nope.png"})
    assert r.status_code == 404


def test_orient_all_endpoint(client, store, session_id, vision, make_image):
    store.store_file(session_id, "originals", "a.png", make_image())
    store.store_file(session_id, "originals", "b.png", make_image())
    vision.replies = ["90", "0"]

    r = client.post(f"/api/sessions/{session_id}/orient-all")

    assert r.status_code == 200
    assert r.json()["results"] == [
        {"url": f"/uploads/{session_id}/originals/a.png", "rotated": 90, "newUrl": f"/uploads/{session_id}/originals/a_oriented.png"},
        {"url": f"/uploads/{session_id}/originals/b.png", "rotated": 0},
    ]


def test_orientation_requires_api_key(client, store, session_id, vision, make_image):
    vision._configured = False
    stored = store.store_file(session_id, "originals", "a.png", make_image())

    r = client.post(f"/api/sessions/{session_id}/orient", json={"imageUrl": stored.url})
    assert r.status_code == 500
    assert r.json() == {"error": "OPENROUTER_API_KEY not configured"}

    r = client.post(f"/api/sessions/{session_id}/orient-all")
    assert r.status_code == 500
