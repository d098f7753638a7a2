"""Resource services for the remote gallery API.

One ``ApiClient`` and one ``AdminCapability`` are shared by the three
services; both are wired in ``init_services`` when the app is created.
"""
from dataclasses import dataclass

from flask import current_app

from gallery_admin.authorization import AdminCapability
from gallery_admin.services.categories import CategoryService
from gallery_admin.services.client import ApiClient
from gallery_admin.services.media import MediaService
from gallery_admin.services.templates import TemplateService

EXTENSION_KEY = "gallery_admin.services"


@dataclass
class Services:
    categories: CategoryService
    templates: TemplateService
    media: MediaService


def init_services(app, gateway, http_session=None) -> Services:
    """Build the services for ``app`` around ``gateway`` and register them."""
    client = ApiClient(
        app.config["API_ENDPOINT"],
        token_source=gateway.bearer_token,
        session=http_session,
        timeout=app.config.get("API_TIMEOUT"),
    )
    capability = AdminCapability(gateway.is_admin)
    services = Services(
        categories=CategoryService(client, capability),
        templates=TemplateService(client, capability),
        media=MediaService(client),
    )
    app.extensions[EXTENSION_KEY] = services
    return services


def get_services() -> Services:
    return current_app.extensions[EXTENSION_KEY]


__all__ = [
    "ApiClient",
    "CategoryService",
    "MediaService",
    "Services",
    "TemplateService",
    "get_services",
    "init_services",
]
