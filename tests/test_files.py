import io
from pathlib import Path

from conftest import PDF_MIME, PPTX_MIME


def _new_session(test_client, title="Biology"):
    r = test_client.post("/api/sessions", json={"title": title})
    assert r.status_code == 200, r.text
    return r.json()["id"]


def test_upload_then_background_extraction(test_client, pdf_bytes, pptx_bytes, settings):
    session_id = _new_session(test_client)
    files = [
        ("files", ("Lecture 1.pdf", io.BytesIO(pdf_bytes), PDF_MIME)),
        ("files", ("cells.pptx", io.BytesIO(pptx_bytes), PPTX_MIME)),
    ]
    r = test_client.post(f"/api/sessions/{session_id}/upload", files=files)
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["message"] == "Files uploaded successfully"
    assert [f["originalName"] for f in body["files"]] == ["Lecture 1.pdf", "cells.pptx"]
    assert body["files"][0]["filename"].endswith("_Lecture_1.pdf")
    assert all(f["sessionId"] == session_id for f in body["files"])

    # TestClient exécute les tâches de fond avant de rendre la main
    r = test_client.get(f"/api/sessions/{session_id}/files")
    assert r.status_code == 200
    assert {f["status"] for f in r.json()} == {"completed"}

    stored = body["files"][0]["filename"]
    assert (Path(settings.UPLOAD_DIR) / stored).read_bytes() == pdf_bytes


def test_corrupt_file_ends_in_error(test_client):
    session_id = _new_session(test_client)
    files = {"files": ("broken.pdf", io.BytesIO(b"%PDF-1.4\n%EOF\n"), PDF_MIME)}
    r = test_client.post(f"/api/sessions/{session_id}/upload", files=files)
    assert r.status_code == 201

    listed = test_client.get(f"/api/sessions/{session_id}/files").json()
    assert [f["status"] for f in listed] == ["error"]


def test_unsupported_type_rejected(test_client, pdf_bytes):
    session_id = _new_session(test_client)
    files = [
        ("files", ("ok.pdf", io.BytesIO(pdf_bytes), PDF_MIME)),
        ("files", ("notes.txt", io.BytesIO(b"hello"), "text/plain")),
    ]
    r = test_client.post(f"/api/sessions/{session_id}/upload", files=files)
    assert r.status_code == 415
    assert "detail" in r.json()
    assert test_client.get(f"/api/sessions/{session_id}/files").json() == []


def test_no_files_is_bad_request(test_client):
    session_id = _new_session(test_client)
    r = test_client.post(f"/api/sessions/{session_id}/upload")
    assert r.status_code == 400
    assert r.json()["detail"] == "No files uploaded"


def test_too_many_files(test_client, settings):
    session_id = _new_session(test_client)
    n = settings.MAX_FILES_PER_UPLOAD + 1
    files = [("files", (f"f{i}.pdf", io.BytesIO(b"%PDF"), PDF_MIME)) for i in range(n)]
    r = test_client.post(f"/api/sessions/{session_id}/upload", files=files)
    assert r.status_code == 400
    assert test_client.get(f"/api/sessions/{session_id}/files").json() == []


def test_file_too_large(test_client):
    session_id = _new_session(test_client)
    big = b"%PDF" + b"0" * (3 * 1024 * 1024)  # limite de test : 2 Mo
    files = {"files": ("big.pdf", io.BytesIO(big), PDF_MIME)}
    r = test_client.post(f"/api/sessions/{session_id}/upload", files=files)
    assert r.status_code == 413
    assert test_client.get(f"/api/sessions/{session_id}/files").json() == []


def test_upload_to_unknown_session(test_client, pdf_bytes):
    files = {"files": ("a.pdf", io.BytesIO(pdf_bytes), PDF_MIME)}
    r = test_client.post("/api/sessions/does-not-exist/upload", files=files)
    assert r.status_code == 404


def test_upload_without_session_creates_one(test_client, pdf_bytes):
    files = {"files": ("bio.pdf", io.BytesIO(pdf_bytes), PDF_MIME)}
    r = test_client.post("/api/upload", files=files)
    assert r.status_code == 201, r.text
    body = r.json()
    session_id = body["sessionId"]
    assert body["files"][0]["sessionId"] == session_id

    sessions = test_client.get("/api/sessions").json()
    created = next(s for s in sessions if s["id"] == session_id)
    assert created["title"] == "New Learning Session"
    assert created["filesCount"] == 1


def test_rejected_upload_without_session_creates_nothing(test_client):
    files = {"files": ("notes.txt", io.BytesIO(b"hello"), "text/plain")}
    r = test_client.post("/api/upload", files=files)
    assert r.status_code == 415
    assert test_client.get("/api/sessions").json() == []
