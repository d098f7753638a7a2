"""Metadata template CRUD against ``/admin/templates``."""
from gallery_admin.models import Template
from gallery_admin.services.base import ResourceService


class TemplateService(ResourceService):
    model = Template
    path = "/admin/templates"
    noun = "template"
