from flask import current_app, request

from library_api.errors import ValidationError


def page_args():
    """``page``, ``pageSize`` and ``search`` from the query string, clamped."""
    page = request.args.get("page", type=int)
    page = page if page and page > 0 else 1

    default_size = current_app.config["PAGE_SIZE_DEFAULT"]
    size = request.args.get("pageSize", type=int)
    size = min(size, current_app.config["PAGE_SIZE_MAX"]) if size and size > 0 else default_size

    search = (request.args.get("search") or "").strip()
    return search, page, size


def page_payload(pagination, page: int, page_size: int) -> dict:
    return {
        "page": page,
        "pageSize": page_size,
        "total": pagination.total or 0,
        "items": [x.to_dict() for x in pagination.items],
    }


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data
