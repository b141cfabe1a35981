from io import BytesIO

import pytest
from botocore.exceptions import ClientError
from pypdf import PdfWriter

from app.boardroom.modules.documents import admin as document_admin
from app.boardroom.modules.documents import service as document_service
from app.boardroom.modules.documents.annotations import validate_position
from app.boardroom.modules.documents.parsers import inspect_upload
from app.boardroom.modules.documents.service import resolve_content_type, validate_upload
from app.boardroom.storage import S3Storage, StorageError


def _pdf_bytes(pages: int = 2) -> bytes:
    writer = PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=612, height=792)
    buf = BytesIO()
    writer.write(buf)
    return buf.getvalue()


def _upload(client, headers, data: bytes, filename: str, **fields):
    form = {"file": (BytesIO(data), filename), **fields}
    return client.post("/api/documents", data=form, headers=headers, content_type="multipart/form-data")


def test_resolve_content_type_and_upload_rules():
    assert resolve_content_type("minutes.pdf", "application/octet-stream") == "application/pdf"
    assert resolve_content_type("notes.txt", "text/plain; charset=utf-8") == "text/plain"

    assert validate_upload("a.pdf", "application/pdf", 10, 1024) == []
    assert validate_upload("a.exe", "application/x-msdownload", 10, 1024) == ["File type not allowed."]
    assert validate_upload("a.pdf", "application/pdf", 0, 1024) == ["File must not be empty."]
    assert validate_upload("a.pdf", "application/pdf", 3 * 1024 * 1024, 2 * 1024 * 1024) == [
        "File size must not exceed 2MB."
    ]


def test_inspect_upload_counts_pdf_pages():
    pages, _text = inspect_upload("application/pdf", _pdf_bytes(3))
    assert pages == 3
    assert inspect_upload("text/plain", b"hello") == (None, None)
    # Broken PDFs are tolerated
    assert inspect_upload("application/pdf", b"%PDF-1.4 garbage") == (None, None)


def test_validate_position():
    assert validate_position({"x": 10, "y": 10, "width": 20, "height": 5}) == []
    assert validate_position({"x": 90, "y": 0, "width": 20, "height": 5}) == [
        "Annotation extends past the right edge of the page."
    ]
    assert "position.width must be greater than 0 and at most 100." in validate_position(
        {"x": 0, "y": 0, "width": 0, "height": 5}
    )
    assert validate_position({"x": "1", "y": 0, "width": 1, "height": 1}) == ["position.x must be a number."]
    assert validate_position(None) == ["position must be an object with x, y, width and height."]


def test_upload_download_and_delete(client, login, tmp_path):
    headers = login("sec@acme.test")

    r = _upload(client, headers, _pdf_bytes(2), "Board Pack.pdf", title="Board Pack Q1", category="financial")
    assert r.status_code == 201, r.json
    doc = r.json["document"]
    assert doc["file_name"] == "Board_Pack.pdf"
    assert doc["file_type"] == "application/pdf"
    assert doc["page_count"] == 2
    assert doc["version"] == 1
    assert len(doc["sha256"]) == 64

    r = client.get(f"/api/documents/{doc['id']}/download")
    assert r.status_code == 200
    assert r.data.startswith(b"%PDF-")
    assert "Board_Pack.pdf" in r.headers["Content-Disposition"]

    r = client.get("/api/audit?action=document.download", headers=headers)
    assert r.json["total"] == 1

    r = client.delete(f"/api/documents/{doc['id']}", headers=headers)
    assert r.status_code == 200
    assert client.get(f"/api/documents/{doc['id']}").status_code == 404
    assert list((tmp_path / "storage" / "documents").rglob("*.pdf")) == []


def test_identical_uploads_are_stored_separately(client, login):
    headers = login("sec@acme.test")
    first = _upload(client, headers, b"Minutes of the March meeting", "minutes.txt", title="March minutes").json["document"]
    second = _upload(client, headers, b"Minutes of the March meeting", "minutes.txt", title="March minutes copy").json["document"]
    assert first["sha256"] == second["sha256"]

    assert client.delete(f"/api/documents/{first['id']}", headers=headers).status_code == 200
    r = client.get(f"/api/documents/{second['id']}/download")
    assert r.status_code == 200
    assert r.data == b"Minutes of the March meeting"


class _DenyingS3Client:
    def delete_object(self, **kwargs):
        raise ClientError({"Error": {"Code": "AccessDenied", "Message": "Access Denied"}}, "DeleteObject")


def _denying_s3() -> S3Storage:
    storage = S3Storage(endpoint="", region="nyc3", bucket="board-docs", access_key_id="k", secret_access_key="s")
    object.__setattr__(storage, "_client", lambda: _DenyingS3Client())
    return storage


def test_s3_delete_failures_raise_storage_error():
    with pytest.raises(StorageError):
        _denying_s3().delete("documents/1/abc/minutes.txt")


def test_failed_purge_does_not_fail_the_delete(client, login, monkeypatch):
    headers = login("sec@acme.test")
    doc = _upload(client, headers, b"draft", "draft.txt", title="Draft policy").json["document"]

    monkeypatch.setattr(document_admin, "storage_from_config", lambda config: _denying_s3())
    r = client.delete(f"/api/documents/{doc['id']}", headers=headers)
    assert r.status_code == 200
    assert client.get(f"/api/documents/{doc['id']}").status_code == 404


def test_upload_validation(client, login):
    headers = login("sec@acme.test")

    r = _upload(client, headers, b"MZ\x90\x00", "tool.exe", title="Tool")
    assert r.status_code == 400
    assert "File type not allowed." in r.json["details"]

    r = _upload(client, headers, b"hello", "notes.txt", title="ab", category="gossip")
    assert r.status_code == 400
    assert "Title must be at least 3 characters." in r.json["details"]

    r = client.post("/api/documents", data={"title": "No file"}, headers=headers, content_type="multipart/form-data")
    assert r.status_code == 400
    assert r.json["details"] == ["Choose a file to upload."]

    r = _upload(client, headers, b"hello", "notes.txt", title="Meeting notes", meeting_id="999")
    assert r.status_code == 400
    assert r.json["error"] == "Meeting must belong to this organization."


def test_versions_share_lineage(client, login):
    headers = login("sec@acme.test")
    v1 = _upload(client, headers, b"draft one", "policy.txt", title="Conflict of Interest Policy").json["document"]

    r = client.post(
        f"/api/documents/{v1['id']}/versions",
        data={"file": (BytesIO(b"draft two"), "policy.txt")},
        headers=headers,
        content_type="multipart/form-data",
    )
    assert r.status_code == 201
    v2 = r.json["document"]
    assert v2["version"] == 2
    assert v2["parent_document_id"] == v1["id"]
    assert v2["title"] == "Conflict of Interest Policy"

    # Only the latest version can be superseded
    r = client.post(
        f"/api/documents/{v1['id']}/versions",
        data={"file": (BytesIO(b"draft three"), "policy.txt")},
        headers=headers,
        content_type="multipart/form-data",
    )
    assert r.status_code == 400

    r = client.get(f"/api/documents/{v2['id']}/versions")
    assert [d["version"] for d in r.json["versions"]] == [1, 2]


def test_list_filters_and_text_search(client, login, monkeypatch):
    headers = login("sec@acme.test")
    monkeypatch.setattr(document_service, "inspect_upload", lambda ct, data: (1, "Quarterly revenue grew strongly"))
    _upload(client, headers, b"x", "report.txt", title="Finance Report", category="financial")
    monkeypatch.setattr(document_service, "inspect_upload", lambda ct, data: (None, None))
    _upload(client, headers, b"y", "charter.txt", title="Board Charter", category="governance", is_library_item="true", library_category="Charters")
    _upload(client, headers, b"z", "code.txt", title="Code of Conduct", category="governance", is_library_item="1")

    r = client.get("/api/documents?category=governance")
    assert r.json["total"] == 2

    r = client.get("/api/documents?search=REVENUE")
    assert [d["title"] for d in r.json["documents"]] == ["Finance Report"]

    r = client.get("/api/library")
    assert r.json["total"] == 2
    groups = {g["library_category"]: g["count"] for g in r.json["categories"]}
    assert groups == {"Charters": 1, "uncategorized": 1}


def test_search_treats_wildcards_literally(client, login):
    headers = login("sec@acme.test")
    _upload(client, headers, b"x", "growth.txt", title="Growth 100% plan")
    _upload(client, headers, b"y", "budget.txt", title="Budget FY_2025")
    _upload(client, headers, b"z", "minutes.txt", title="Minutes of March")

    r = client.get("/api/documents", query_string={"search": "%"})
    assert [d["title"] for d in r.json["documents"]] == ["Growth 100% plan"]

    r = client.get("/api/documents", query_string={"search": "_"})
    assert [d["title"] for d in r.json["documents"]] == ["Budget FY_2025"]


def test_update_metadata(client, login, member_ids):
    headers = login("sec@acme.test")
    doc = _upload(client, headers, b"x", "cv.txt", title="Director CV").json["document"]

    r = client.patch(
        f"/api/documents/{doc['id']}",
        json={"board_member_id": member_ids["Eli Director"], "is_public": True, "category": "other"},
        headers=headers,
    )
    assert r.status_code == 200
    assert r.json["document"]["board_member_id"] == member_ids["Eli Director"]
    assert r.json["document"]["is_public"] is True

    r = client.patch(f"/api/documents/{doc['id']}", json={"category": "secret"}, headers=headers)
    assert r.status_code == 400


@pytest.fixture()
def pdf_doc_id(client, login):
    headers = login("sec@acme.test")
    r = _upload(client, headers, _pdf_bytes(2), "pack.pdf", title="Board Pack")
    return r.json["document"]["id"]


def test_annotations(client, login, pdf_doc_id):
    headers = login("dir1@acme.test")
    base = f"/api/documents/{pdf_doc_id}/annotations"
    box = {"x": 10, "y": 20, "width": 30, "height": 4}

    r = client.post(base, json={"page_number": 1, "annotation_type": "highlight", "position": box}, headers=headers)
    assert r.status_code == 201
    private = r.json["annotation"]
    assert private["color"] == "#FFFF00"
    assert private["author"] == "Dana Director"

    r = client.post(
        base,
        json={"page_number": 2, "annotation_type": "note", "position": box, "content": "Check this", "is_public": True},
        headers=headers,
    )
    assert r.status_code == 201
    public = r.json["annotation"]

    # Page bounds come from the PDF
    r = client.post(base, json={"page_number": 3, "annotation_type": "highlight", "position": box}, headers=headers)
    assert r.status_code == 400
    assert r.json["details"] == ["Page number must be at most 2."]

    r = client.post(base, json={"page_number": 1, "annotation_type": "note", "position": box}, headers=headers)
    assert r.json["details"] == ["Content is required for notes."]

    assert [a["id"] for a in client.get(base).json["annotations"]] == [private["id"], public["id"]]
    assert [a["id"] for a in client.get(f"{base}?page=2").json["annotations"]] == [public["id"]]

    client.post("/auth/logout")
    headers = login("dir2@acme.test")
    # Other users only see public annotations and cannot change them
    assert [a["id"] for a in client.get(base).json["annotations"]] == [public["id"]]
    r = client.patch(f"{base}/{public['id']}", json={"content": "Hijacked"}, headers=headers)
    assert r.status_code == 403
    assert client.delete(f"{base}/{public['id']}", headers=headers).status_code == 403

    client.post("/auth/logout")
    headers = login("dir1@acme.test")
    r = client.patch(f"{base}/{public['id']}", json={"content": "", "color": "#00ff00"}, headers=headers)
    assert r.status_code == 400
    r = client.patch(f"{base}/{public['id']}", json={"color": "#00ff00"}, headers=headers)
    assert r.json["annotation"]["color"] == "#00FF00"
    assert client.delete(f"{base}/{private['id']}", headers=headers).status_code == 200


def test_deleting_document_removes_annotations(client, login, app, pdf_doc_id):
    from app.boardroom.db import session_scope
    from app.boardroom.models import DocumentAnnotation

    headers = login("sec@acme.test")
    client.post(
        f"/api/documents/{pdf_doc_id}/annotations",
        json={"page_number": 1, "annotation_type": "underline", "position": {"x": 0, "y": 0, "width": 5, "height": 5}},
        headers=headers,
    )
    assert client.delete(f"/api/documents/{pdf_doc_id}", headers=headers).status_code == 200
    with session_scope(app) as s:
        assert s.query(DocumentAnnotation).count() == 0
