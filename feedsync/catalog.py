"""
Catalog Feed Sync - Remote Catalog Contract
Operations the sync engine needs from the e-commerce platform.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from .models import InventoryLevel, ProductPayload, RemoteProduct, VariantSpec


class CatalogAPI(ABC):
    """
    Remote catalog operations used by the reconciliation layer.

    Implementations raise:
    - CatalogNotFoundError when the addressed product does not exist
    - StructuralCatalogError when a required sub-object (variant,
      inventory levels) is missing
    - CatalogAuthError when credentials are rejected
    - CatalogAPIError for any other failure
    """

    @abstractmethod
    def find_product_id_by_sku(self, sku: str) -> Optional[str]:
        """Remote id of the product carrying this SKU, if any."""

    @abstractmethod
    def get_product(self, remote_id: str) -> Optional[RemoteProduct]:
        """The product, or None if it does not exist."""

    @abstractmethod
    def list_products(self) -> List[RemoteProduct]:
        """Every product in the catalog, whatever its publication state."""

    @abstractmethod
    def create_product(self, payload: ProductPayload) -> str:
        """Create an unpublished product and return its remote id."""

    @abstractmethod
    def update_product(self, remote_id: str, payload: ProductPayload):
        """Overwrite the presentation fields of a product."""

    @abstractmethod
    def delete_product(self, remote_id: str):
        """Delete a product."""

    @abstractmethod
    def publish(self, remote_id: str):
        """Make the product visible on every sales channel."""

    @abstractmethod
    def replace_options_and_variant(self, remote_id: str, variant: VariantSpec):
        """Remove the product's options and variants, then recreate them from ``variant``."""

    @abstractmethod
    def replace_images(self, remote_id: str, urls: List[str]):
        """Remove every image of the product, then attach ``urls`` in order."""

    @abstractmethod
    def upsert_metafields(self, remote_id: str, values: Dict[str, str]):
        """Create or overwrite metafields by key. Never touches options or variants."""

    @abstractmethod
    def get_inventory_levels(self, remote_id: str) -> List[InventoryLevel]:
        """Current available quantity per location of the product's variant."""

    @abstractmethod
    def set_inventory_absolute(self, remote_id: str, levels: List[InventoryLevel]):
        """Set each location's quantity to the given absolute value."""
