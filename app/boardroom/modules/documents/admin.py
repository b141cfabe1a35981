from __future__ import annotations

from flask import Blueprint, abort, current_app, jsonify, request, send_file

from app.boardroom.db import db_session
from app.boardroom.modules.documents.annotations import (
    annotation_to_dict,
    create_annotation,
    delete_annotation,
    list_annotations,
    update_annotation,
    validate_annotation_payload,
)
from app.boardroom.modules.documents.models import Document, DocumentAnnotation
from app.boardroom.modules.documents.service import (
    create_document,
    create_version,
    delete_document,
    document_to_dict,
    filter_documents,
    library_groups,
    list_versions,
    record_download,
    resolve_content_type,
    update_document,
    validate_document_payload,
    validate_upload,
)
from app.boardroom.rbac import require_permission
from app.boardroom.storage import StorageError, storage_from_config
from app.boardroom.utils import (
    current_org_id,
    current_user,
    error_response,
    get_org_entity_or_404,
    json_body,
    pagination_args,
    parse_int,
    validation_error,
)

bp = Blueprint("documents", __name__)


def _load_document(s, doc_id: int) -> Document:
    return get_org_entity_or_404(s, Document, doc_id, current_org_id())


def _read_upload() -> tuple[str, str, bytes, list[str]]:
    f = request.files.get("file")
    if not f or not f.filename:
        return "", "", b"", ["Choose a file to upload."]
    data = f.read()
    content_type = resolve_content_type(f.filename, f.mimetype)
    errors = validate_upload(f.filename, content_type, len(data), current_app.config["MAX_UPLOAD_BYTES"])
    return f.filename, content_type, data, errors


@bp.get("/documents")
@require_permission("documents.view")
def list_documents():
    s = db_session()
    org_id = current_org_id()
    limit, offset = pagination_args()

    query = filter_documents(s.query(Document).filter(Document.organization_id == org_id), request.args)
    total = query.count()
    docs = query.order_by(Document.created_at.desc(), Document.id.desc()).offset(offset).limit(limit).all()
    return jsonify({"documents": [document_to_dict(d) for d in docs], "total": total, "limit": limit, "offset": offset})


@bp.post("/documents")
@require_permission("documents.upload")
def upload_document():
    s = db_session()
    org_id = current_org_id()
    payload = request.form.to_dict()

    filename, content_type, data, errors = _read_upload()
    errors += validate_document_payload(payload)
    if errors:
        return validation_error(errors)

    try:
        doc = create_document(
            s,
            storage_from_config(current_app.config),
            org_id,
            payload,
            filename=filename,
            content_type=content_type,
            data=data,
            user=current_user(),
        )
    except ValueError as e:
        return error_response(str(e))
    s.commit()
    current_app.logger.info("document %s uploaded (%s bytes)", doc.id, doc.file_size)
    return jsonify({"document": document_to_dict(doc)}), 201


@bp.get("/documents/<int:doc_id>")
@require_permission("documents.view")
def get_document(doc_id: int):
    s = db_session()
    doc = _load_document(s, doc_id)
    data = document_to_dict(doc)
    data["versions"] = [{"id": d.id, "version": d.version, "created_at": d.created_at.isoformat()} for d in list_versions(s, doc)]
    return jsonify({"document": data})


@bp.patch("/documents/<int:doc_id>")
@require_permission("documents.edit")
def update_document_patch(doc_id: int):
    s = db_session()
    doc = _load_document(s, doc_id)
    payload = json_body()

    errors = validate_document_payload(payload, partial=True)
    if errors:
        return validation_error(errors)

    try:
        update_document(s, doc, payload, current_user())
    except ValueError as e:
        return error_response(str(e))
    s.commit()
    return jsonify({"document": document_to_dict(doc)})


@bp.delete("/documents/<int:doc_id>")
@require_permission("documents.edit")
def delete_document_delete(doc_id: int):
    s = db_session()
    doc = _load_document(s, doc_id)
    storage_key = delete_document(s, doc, current_user())
    s.commit()

    try:
        storage_from_config(current_app.config).delete(storage_key)
    except (OSError, StorageError) as e:
        current_app.logger.warning("could not purge stored file %s: %s", storage_key, e)
    return jsonify({"success": True})


@bp.get("/documents/<int:doc_id>/download")
@require_permission("documents.view")
def download_document(doc_id: int):
    s = db_session()
    doc = _load_document(s, doc_id)

    storage = storage_from_config(current_app.config)
    try:
        fobj = storage.open(doc.storage_key)
    except FileNotFoundError:
        current_app.logger.error("stored file missing for document %s: %s", doc.id, doc.storage_key)
        abort(404)

    record_download(s, doc, current_user())
    s.commit()
    return send_file(fobj, mimetype=doc.file_type, as_attachment=True, download_name=doc.file_name, max_age=0)


@bp.get("/documents/<int:doc_id>/versions")
@require_permission("documents.view")
def document_versions(doc_id: int):
    s = db_session()
    doc = _load_document(s, doc_id)
    return jsonify({"versions": [document_to_dict(d) for d in list_versions(s, doc)]})


@bp.post("/documents/<int:doc_id>/versions")
@require_permission("documents.upload")
def upload_document_version(doc_id: int):
    s = db_session()
    base = _load_document(s, doc_id)
    payload = request.form.to_dict()

    filename, content_type, data, errors = _read_upload()
    if errors:
        return validation_error(errors)

    try:
        doc = create_version(
            s,
            storage_from_config(current_app.config),
            base,
            payload,
            filename=filename,
            content_type=content_type,
            data=data,
            user=current_user(),
        )
    except ValueError as e:
        return error_response(str(e))
    s.commit()
    return jsonify({"document": document_to_dict(doc)}), 201


@bp.get("/library")
@require_permission("documents.view")
def library():
    s = db_session()
    groups = library_groups(s, current_org_id())
    return jsonify(
        {
            "categories": [
                {"library_category": name, "count": len(docs), "documents": [document_to_dict(d) for d in docs]}
                for name, docs in groups.items()
            ],
            "total": sum(len(docs) for docs in groups.values()),
        }
    )


# Annotations


def _load_annotation(s, doc: Document, annotation_id: int) -> DocumentAnnotation:
    annotation = s.get(DocumentAnnotation, annotation_id)
    if annotation is None or annotation.document_id != doc.id:
        abort(404)
    return annotation


@bp.get("/documents/<int:doc_id>/annotations")
@require_permission("documents.view")
def list_document_annotations(doc_id: int):
    s = db_session()
    doc = _load_document(s, doc_id)
    page = parse_int(request.args.get("page"))
    rows = list_annotations(s, doc, current_user(), page=page)
    return jsonify({"annotations": [annotation_to_dict(a) for a in rows]})


@bp.post("/documents/<int:doc_id>/annotations")
@require_permission("documents.annotate")
def create_document_annotation(doc_id: int):
    s = db_session()
    doc = _load_document(s, doc_id)
    payload = json_body()

    errors = validate_annotation_payload(payload, document=doc)
    if errors:
        return validation_error(errors)

    annotation = create_annotation(s, doc, payload, current_user())
    s.commit()
    return jsonify({"annotation": annotation_to_dict(annotation)}), 201


@bp.patch("/documents/<int:doc_id>/annotations/<int:annotation_id>")
@require_permission("documents.annotate")
def update_document_annotation(doc_id: int, annotation_id: int):
    s = db_session()
    doc = _load_document(s, doc_id)
    annotation = _load_annotation(s, doc, annotation_id)
    payload = json_body()

    errors = validate_annotation_payload(payload, document=doc, partial=True, existing=annotation)
    if errors:
        return validation_error(errors)

    try:
        update_annotation(s, annotation, payload, current_user())
    except PermissionError as e:
        return error_response(str(e), 403)
    s.commit()
    return jsonify({"annotation": annotation_to_dict(annotation)})


@bp.delete("/documents/<int:doc_id>/annotations/<int:annotation_id>")
@require_permission("documents.annotate")
def delete_document_annotation(doc_id: int, annotation_id: int):
    s = db_session()
    doc = _load_document(s, doc_id)
    annotation = _load_annotation(s, doc, annotation_id)
    try:
        delete_annotation(s, annotation, current_user())
    except PermissionError as e:
        return error_response(str(e), 403)
    s.commit()
    return jsonify({"success": True})
