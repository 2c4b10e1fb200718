from library_api.errors import NotFoundError, ValidationError
from library_api.models.category import Category
from library_api.models.publisher import Publisher
from library_api.repositories.catalog_repo import CatalogRepo
from library_api.repositories.unit_of_work import unit_of_work


class CatalogResource:
    def __init__(self, model, label: str, fields, search_columns):
        self.model = model
        self.label = label
        self.fields = fields
        self.search_columns = search_columns


RESOURCES = {
    "categories": CatalogResource(Category, "Category", ("name", "description"), ("name", "description")),
    "publishers": CatalogResource(Publisher, "Publisher", ("name", "address", "phone"), ("name", "address", "phone")),
}


class CatalogService:
    """Categories and publishers. Both are plain named records with a few text fields."""

    @staticmethod
    def _apply(resource: CatalogResource, record, data: dict, creating: bool):
        for field in resource.fields:
            if field not in data:
                continue
            value = data[field]
            if value is not None and not isinstance(value, str):
                raise ValidationError(f"{field} must be a string")
            setattr(record, field, value.strip() if isinstance(value, str) else None)

        if creating or "name" in data:
            if not record.name:
                raise ValidationError("name is required")

    @staticmethod
    def list(resource: CatalogResource, search: str, page: int, page_size: int):
        return CatalogRepo.paginate(resource.model, resource.search_columns, search, page, page_size)

    @staticmethod
    def get(resource: CatalogResource, record_id: str):
        record = CatalogRepo.get(resource.model, record_id)
        if not record:
            raise NotFoundError(f"{resource.label} {record_id} not found")
        return record

    @staticmethod
    def create(resource: CatalogResource, data: dict):
        record = resource.model()
        CatalogService._apply(resource, record, data, creating=True)
        with unit_of_work(f"create {resource.label.lower()}"):
            CatalogRepo.add(record)
        return record

    @staticmethod
    def update(resource: CatalogResource, record_id: str, data: dict):
        if not any(f in data for f in resource.fields):
            raise ValidationError("Nothing to update")
        with unit_of_work(f"update {resource.label.lower()}"):
            record = CatalogService.get(resource, record_id)
            CatalogService._apply(resource, record, data, creating=False)
        return record

    @staticmethod
    def delete(resource: CatalogResource, record_id: str):
        with unit_of_work(f"delete {resource.label.lower()}"):
            record = CatalogService.get(resource, record_id)
            CatalogRepo.delete(record)
