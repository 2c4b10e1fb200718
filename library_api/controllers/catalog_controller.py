from flask import Blueprint, jsonify

from library_api.services.catalog_service import CatalogService, RESOURCES
from library_api.utils.decorators import role_required
from library_api.utils.request_args import json_body, page_args, page_payload


def _resource_blueprint(name: str) -> Blueprint:
    resource = RESOURCES[name]
    bp = Blueprint(name, __name__, url_prefix=f"/api/{name}")

    @bp.get("")
    def list_records():
        search, page, size = page_args()
        records = CatalogService.list(resource, search, page, size)
        return jsonify({"success": True, "data": page_payload(records, page, size)})

    @bp.get("/<record_id>")
    def get_record(record_id: str):
        record = CatalogService.get(resource, record_id)
        return jsonify({"success": True, "data": record.to_dict()})

    @bp.post("")
    @role_required("admin")
    def create_record():
        record = CatalogService.create(resource, json_body())
        return jsonify({"success": True, "data": record.to_dict()}), 201

    @bp.put("/<record_id>")
    @role_required("admin")
    def update_record(record_id: str):
        record = CatalogService.update(resource, record_id, json_body())
        return jsonify({"success": True, "data": record.to_dict()})

    @bp.delete("/<record_id>")
    @role_required("admin")
    def delete_record(record_id: str):
        CatalogService.delete(resource, record_id)
        return "", 204

    return bp


category_bp = _resource_blueprint("categories")
publisher_bp = _resource_blueprint("publishers")
