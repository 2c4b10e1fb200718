from library_api.errors import ConflictError, NotFoundError, ValidationError
from library_api.models.book import Book
from library_api.models.category import Category
from library_api.models.publisher import Publisher
from library_api.repositories.book_repo import BookRepo
from library_api.repositories.catalog_repo import CatalogRepo
from library_api.repositories.unit_of_work import unit_of_work

SEARCH_COLUMNS = ("title", "author")


def _text(data: dict, key: str, required: bool = False):
    value = data.get(key)
    if value is None:
        if required:
            raise ValidationError(f"{key} is required")
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string")
    value = value.strip()
    if required and not value:
        raise ValidationError(f"{key} is required")
    return value or None


def _quantity(value):
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError("quantity must be a non-negative integer")
    return value


class BookService:
    @staticmethod
    def list_books(search: str, page: int, page_size: int):
        return CatalogRepo.paginate(Book, SEARCH_COLUMNS, search, page, page_size)

    @staticmethod
    def get_book(book_id: str):
        book = BookRepo.get(book_id)
        if not book:
            raise NotFoundError(f"Book {book_id} not found", book_id=book_id)
        return book

    @staticmethod
    def _check_refs(data: dict):
        if data.get("categoryId") and not CatalogRepo.get(Category, data["categoryId"]):
            raise NotFoundError(f"Category {data['categoryId']} not found")
        if data.get("publisherId") and not CatalogRepo.get(Publisher, data["publisherId"]):
            raise NotFoundError(f"Publisher {data['publisherId']} not found")

    @staticmethod
    def create_book(data: dict):
        book = Book(
            title=_text(data, "title", required=True),
            author=_text(data, "author"),
            category_id=data.get("categoryId") or None,
            publisher_id=data.get("publisherId") or None,
            quantity=_quantity(data.get("quantity", 0)),
        )
        with unit_of_work("create book"):
            BookService._check_refs(data)
            CatalogRepo.add(book)
        return book

    @staticmethod
    def update_book(book_id: str, data: dict):
        if not data:
            raise ValidationError("Nothing to update")

        with unit_of_work("update book"):
            # same row lock the borrowing engine takes, so a restock cannot race a reservation
            book = BookRepo.lock_many([book_id]).get(book_id)
            if not book:
                raise NotFoundError(f"Book {book_id} not found", book_id=book_id)
            BookService._check_refs(data)

            if "title" in data:
                book.title = _text(data, "title", required=True)
            if "author" in data:
                book.author = _text(data, "author")
            if "categoryId" in data:
                book.category_id = data["categoryId"] or None
            if "publisherId" in data:
                book.publisher_id = data["publisherId"] or None
            if "quantity" in data:
                book.quantity = _quantity(data["quantity"])
        return book

    @staticmethod
    def delete_book(book_id: str):
        with unit_of_work("delete book"):
            book = BookRepo.lock_many([book_id]).get(book_id)
            if not book:
                raise NotFoundError(f"Book {book_id} not found", book_id=book_id)
            if BookRepo.is_referenced(book_id):
                raise ConflictError(f"Book {book_id} appears in borrowings and cannot be deleted", book_id=book_id)
            CatalogRepo.delete(book)
