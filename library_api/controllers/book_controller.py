from flask import Blueprint, jsonify

from library_api.services.book_service import BookService
from library_api.utils.decorators import role_required
from library_api.utils.request_args import json_body, page_args, page_payload

book_bp = Blueprint("books", __name__, url_prefix="/api/books")


@book_bp.get("")
def list_books():
    search, page, size = page_args()
    books = BookService.list_books(search, page, size)
    return jsonify({"success": True, "data": page_payload(books, page, size)})


@book_bp.get("/<book_id>")
def get_book(book_id: str):
    b = BookService.get_book(book_id)
    return jsonify({"success": True, "data": b.to_dict()})


@book_bp.post("")
@role_required("admin")
def create_book():
    b = BookService.create_book(json_body())
    return jsonify({"success": True, "data": b.to_dict()}), 201


@book_bp.put("/<book_id>")
@role_required("admin")
def update_book(book_id: str):
    b = BookService.update_book(book_id, json_body())
    return jsonify({"success": True, "data": b.to_dict()})


@book_bp.delete("/<book_id>")
@role_required("admin")
def delete_book(book_id: str):
    BookService.delete_book(book_id)
    return "", 204
