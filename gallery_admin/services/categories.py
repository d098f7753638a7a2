"""Category CRUD against ``/admin/categories``."""
from gallery_admin.models import Category
from gallery_admin.services.base import ResourceService


class CategoryService(ResourceService):
    model = Category
    path = "/admin/categories"
    noun = "category"
