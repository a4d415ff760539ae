"""
Catalog Feed Sync - WooCommerce Catalog
CatalogAPI implementation on the WooCommerce REST API (wc/v3).
"""

import logging
import time
from typing import Any, Dict, List, Optional

import requests
from woocommerce import API as WooAPI

from .catalog import CatalogAPI
from .exceptions import (
    CatalogAPIError,
    CatalogAuthError,
    CatalogNotFoundError,
    StructuralCatalogError,
)
from .models import (
    METAFIELD_NAMESPACE,
    InventoryLevel,
    ProductPayload,
    RemoteProduct,
    VariantSpec,
)

logger = logging.getLogger(__name__)

DEFAULT_LOCATION = "default"


class WooCatalogAPI(CatalogAPI):
    """
    WooCommerce mapping of the catalog contract.

    - Products are ``variable`` products with exactly one variation.
    - Options are the product's variation attributes (Color/Size/Material).
    - WooCommerce keeps SKUs unique across parents and variations, so the
      business key is the parent SKU and the variation inherits it.
    - Metafields are product ``meta_data`` entries, upserted by key.
    - Inventory is the variation's ``stock_quantity`` at a single location.
    """

    MAX_RETRIES = 3
    RETRY_DELAY = 2  # seconds, doubles each retry
    PAGE_SIZE = 100

    def __init__(
        self,
        woo_url: str,
        consumer_key: str,
        consumer_secret: str,
        timeout: int = 60,
    ):
        """Initialize WooCommerce API client."""
        self.wcapi = WooAPI(
            url=woo_url,
            consumer_key=consumer_key,
            consumer_secret=consumer_secret,
            version="wc/v3",
            timeout=timeout,
        )
        logger.info(f"WooCatalogAPI initialized ({woo_url})")

    # =========================================================================
    # PRODUCTS
    # =========================================================================

    def find_product_id_by_sku(self, sku: str) -> Optional[str]:
        products = self._request("get", "products", params={"sku": sku, "status": "any"}, business_key=sku)
        if products:
            return str(products[0]["id"])
        return None

    def get_product(self, remote_id: str) -> Optional[RemoteProduct]:
        try:
            product = self._request("get", f"products/{remote_id}")
        except CatalogNotFoundError:
            return None
        return self._to_remote_product(product)

    def list_products(self) -> List[RemoteProduct]:
        products = []
        page = 1
        while True:
            batch = self._request("get", "products", params={
                "page": page,
                "per_page": self.PAGE_SIZE,
                "status": "any",
            })
            if not batch:
                break
            products.extend(self._to_remote_product(p) for p in batch)
            logger.debug(f"   Page {page}: {len(batch)} products")
            page += 1
        logger.info(f"Fetched {len(products)} products from WooCommerce")
        return products

    def create_product(self, payload: ProductPayload) -> str:
        data = self._product_data(payload)
        data.update({"type": "variable", "status": "draft"})
        try:
            product = self._request("post", "products", data=data, business_key=payload.sku, retry=False)
        except CatalogAPIError as e:
            if not e.is_retryable:
                raise
            # The create may have been committed before the failure
            remote_id = self.find_product_id_by_sku(payload.sku)
            if remote_id is None:
                raise
            logger.warning(f"⚠️ Create of {payload.sku} failed but product exists (ID: {remote_id}), adopting it")
            return remote_id
        remote_id = str(product["id"])
        logger.info(f"Created product {payload.sku} (ID: {remote_id})")
        return remote_id

    def update_product(self, remote_id: str, payload: ProductPayload):
        self._request("put", f"products/{remote_id}", data=self._product_data(payload), business_key=payload.sku)

        # Variable products carry their price on the variation
        for variation in self._variations(remote_id):
            self._request(
                "put",
                f"products/{remote_id}/variations/{variation['id']}",
                data={"regular_price": payload.price},
                business_key=payload.sku,
            )

    def delete_product(self, remote_id: str):
        self._request("delete", f"products/{remote_id}", params={"force": True})
        logger.info(f"Deleted product ID {remote_id}")

    def publish(self, remote_id: str):
        self._request("put", f"products/{remote_id}", data={
            "status": "publish",
            "catalog_visibility": "visible",
        })

    # =========================================================================
    # OPTIONS / IMAGES / METAFIELDS
    # =========================================================================

    def replace_options_and_variant(self, remote_id: str, variant: VariantSpec):
        existing = [v["id"] for v in self._variations(remote_id)]
        if existing:
            self._request(
                "post",
                f"products/{remote_id}/variations/batch",
                data={"delete": existing},
                business_key=variant.sku,
            )
            logger.debug(f"Removed {len(existing)} variations from product {remote_id}")

        attributes = [
            {"name": name, "options": [value], "variation": True, "visible": True}
            for name, value in variant.options.items()
        ]
        self._request("put", f"products/{remote_id}", data={"attributes": attributes}, business_key=variant.sku)

        self._request(
            "post",
            f"products/{remote_id}/variations",
            data={
                "regular_price": variant.price,
                "attributes": [{"name": name, "option": value} for name, value in variant.options.items()],
                "manage_stock": True,
                "stock_quantity": 0,
            },
            business_key=variant.sku,
            retry=False,
        )
        logger.debug(f"Recreated variation for product {remote_id}: {variant.options}")

    def replace_images(self, remote_id: str, urls: List[str]):
        self._request("put", f"products/{remote_id}", data={"images": []})
        if urls:
            images = [{"src": url, "position": position} for position, url in enumerate(urls)]
            self._request("put", f"products/{remote_id}", data={"images": images})

    def upsert_metafields(self, remote_id: str, values: Dict[str, str]):
        if not values:
            return
        meta_data = [
            {"key": f"{METAFIELD_NAMESPACE}_{key}", "value": value}
            for key, value in values.items()
        ]
        self._request("put", f"products/{remote_id}", data={"meta_data": meta_data})

    # =========================================================================
    # INVENTORY
    # =========================================================================

    def get_inventory_levels(self, remote_id: str) -> List[InventoryLevel]:
        variation = self._single_variation(remote_id)
        if variation.get("stock_quantity") is None:
            raise StructuralCatalogError("no inventory levels", remote_id=remote_id)
        return [InventoryLevel(location_id=DEFAULT_LOCATION, available=int(variation["stock_quantity"]))]

    def set_inventory_absolute(self, remote_id: str, levels: List[InventoryLevel]):
        if not levels:
            raise StructuralCatalogError("no inventory levels", remote_id=remote_id)
        variation = self._single_variation(remote_id)
        quantity = sum(level.available for level in levels)
        self._request(
            "put",
            f"products/{remote_id}/variations/{variation['id']}",
            data={"manage_stock": True, "stock_quantity": quantity},
        )

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _variations(self, remote_id: str) -> List[Dict[str, Any]]:
        return self._request("get", f"products/{remote_id}/variations", params={"per_page": self.PAGE_SIZE}) or []

    def _single_variation(self, remote_id: str) -> Dict[str, Any]:
        variations = self._variations(remote_id)
        if not variations:
            raise StructuralCatalogError("no variant", remote_id=remote_id)
        return variations[0]

    @staticmethod
    def _product_data(payload: ProductPayload) -> Dict[str, Any]:
        data = {
            "name": payload.title,
            "description": payload.body_html,
            "sku": payload.sku,
            "tags": [{"name": tag} for tag in payload.tags],
        }
        if payload.vendor:
            data["short_description"] = payload.vendor
        return data

    @staticmethod
    def _to_remote_product(product: Dict[str, Any]) -> RemoteProduct:
        return RemoteProduct(
            remote_id=str(product["id"]),
            sku=(product.get("sku") or "").strip() or None,
            title=product.get("name", ""),
            image_count=len(product.get("images") or []),
        )

    def _request(
        self,
        method: str,
        endpoint: str,
        data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        business_key: Optional[str] = None,
        retry: bool = True,
    ) -> Any:
        """
        Call the API, retrying retryable failures with exponential backoff.

        Creates pass ``retry=False``: a timeout can hide a committed write, so
        a second attempt could duplicate the resource.
        """
        last_error = None
        attempts = self.MAX_RETRIES if retry else 1

        for attempt in range(attempts):
            try:
                if method in ("get", "delete"):
                    response = getattr(self.wcapi, method)(endpoint, params=params)
                else:
                    response = getattr(self.wcapi, method)(endpoint, data)
            except requests.exceptions.RequestException as e:
                last_error = CatalogAPIError(f"{method.upper()} {endpoint}: {e}", business_key=business_key)
                logger.warning(f"⚠️ {last_error}")
            else:
                if response.status_code in (200, 201):
                    return response.json()

                last_error = self._error_for(response, method, endpoint, business_key)
                if not last_error.is_retryable:
                    raise last_error
                logger.warning(f"⚠️ {last_error}")

            if attempt < attempts - 1:
                delay = self.RETRY_DELAY * (2 ** attempt)
                logger.info(f"🔄 Retrying in {delay}s (attempt {attempt + 2}/{attempts})...")
                time.sleep(delay)

        raise last_error

    @staticmethod
    def _error_for(response, method: str, endpoint: str, business_key: Optional[str]) -> CatalogAPIError:
        message = f"{method.upper()} {endpoint} failed: {response.text[:100]}"
        if response.status_code in (401, 403):
            return CatalogAuthError(message, status_code=response.status_code)
        if response.status_code == 404:
            return CatalogNotFoundError(message, business_key=business_key)
        return CatalogAPIError(message, status_code=response.status_code, business_key=business_key)
