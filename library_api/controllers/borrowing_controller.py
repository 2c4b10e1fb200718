from flask import Blueprint, jsonify, g

from library_api.services.borrowing_service import BorrowingService
from library_api.utils.decorators import login_required
from library_api.utils.request_args import json_body

borrowing_bp = Blueprint("borrowings", __name__, url_prefix="/api/borrowings")


@borrowing_bp.get("")
@login_required
def list_borrowings():
    # admins see every request, everyone else only their own
    borrowings = BorrowingService.list_borrowings(g.caller)
    return jsonify({"success": True, "data": [b.to_dict() for b in borrowings]})


@borrowing_bp.get("/<borrowing_id>")
@login_required
def get_borrowing(borrowing_id: str):
    b = BorrowingService.get_borrowing(g.caller, borrowing_id)
    return jsonify({"success": True, "data": b.to_dict()})


@borrowing_bp.post("")
@login_required
def create_borrowing():
    data = json_body()
    b = BorrowingService.create_borrowing(
        g.caller,
        data.get("items"),
        notes=data.get("notes"),
        expected_return_date=data.get("expectedReturnDate"),
    )
    return jsonify({"success": True, "data": b.to_dict()}), 201


@borrowing_bp.patch("/<borrowing_id>")
@login_required
def update_borrowing(borrowing_id: str):
    data = json_body()
    b = BorrowingService.transition_borrowing(
        g.caller,
        borrowing_id,
        status=data.get("status"),
        notes=data.get("notes"),
    )
    return jsonify({"success": True, "data": b.to_dict()})
