from flask import Blueprint, jsonify, g

from library_api.services.auth_service import AuthService
from library_api.services.user_service import UserService
from library_api.utils.decorators import login_required
from library_api.utils.request_args import json_body

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/register")
def register():
    data = json_body()
    user = AuthService.register(
        name=data.get("name"),
        email=data.get("email"),
        password=data.get("password"),
        role=data.get("role") or "user",
        # anyone may register a user; only a logged-in admin may register an admin
        requester=AuthService.current_caller(),
    )
    return jsonify({
        "success": True,
        "token": AuthService.issue_token(user),
        "user": user.to_dict(),
        "expiresIn": AuthService.expires_in(),
    }), 201


@auth_bp.post("/login")
def login():
    data = json_body()
    token, user = AuthService.login(data.get("email"), data.get("password"))
    return jsonify({
        "success": True,
        "token": token,
        "user": user.to_dict(),
        "expiresIn": AuthService.expires_in(),
    })


@auth_bp.get("/me")
@login_required
def me():
    user = UserService.get_user(g.caller.id)
    return jsonify({"success": True, "user": user.to_dict()})
