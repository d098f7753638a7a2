"""Shared CRUD behaviour for the admin-gated resource services."""
from typing import Any

import structlog

from gallery_admin.authorization import AdminCapability
from gallery_admin.services.client import ApiClient

logger = structlog.get_logger(__name__)


class ResourceService:
    """
    List/get/create/update/delete against one ``/admin/<resource>`` collection.

    Reads are open to any signed-in session. Every mutation first asks the
    injected capability, then validates the payload, and only then touches
    the network.

    Subclasses set ``model`` (a dataclass with ``validate``/``to_payload``/
    ``from_api``), ``path`` and ``noun``.
    """

    model: Any = None
    path: str = ""
    noun: str = "resource"

    def __init__(self, client: ApiClient, capability: AdminCapability):
        self.client = client
        self.capability = capability

    def _item_path(self, item_id: str) -> str:
        return f"{self.path}/{item_id}"

    def list(self) -> list:
        data = self.client.get_json(self.path)
        return [self.model.from_api(item) for item in data or []]

    def get(self, item_id: str):
        return self.model.from_api(self.client.get_json(self._item_path(item_id)))

    def create(self, item):
        self.capability.require(f"create_{self.noun}")
        item.validate()
        created = self.model.from_api(
            self.client.post_json(self.path, item.to_payload())
        )
        logger.info(f"{self.noun}_created", resource_id=created.id)
        return created

    def update(self, item_id: str, item):
        self.capability.require(f"update_{self.noun}")
        item.validate()
        updated = self.model.from_api(
            self.client.put_json(self._item_path(item_id), item.to_payload())
        )
        logger.info(f"{self.noun}_updated", resource_id=item_id)
        return updated

    def delete(self, item_id: str) -> None:
        self.capability.require(f"delete_{self.noun}")
        self.client.delete(self._item_path(item_id))
        logger.info(f"{self.noun}_deleted", resource_id=item_id)
