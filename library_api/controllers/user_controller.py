from flask import Blueprint, jsonify, g

from library_api.services.user_service import UserService
from library_api.utils.decorators import role_required

user_bp = Blueprint("users", __name__, url_prefix="/api/users")


@user_bp.get("")
@role_required("admin")
def list_users():
    users = UserService.list_users(g.caller)
    return jsonify({"success": True, "data": [u.to_dict() for u in users]})


@user_bp.delete("/<user_id>")
@role_required("admin")
def delete_user(user_id: str):
    UserService.delete_user(g.caller, user_id)
    return "", 204
