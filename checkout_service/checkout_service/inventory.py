"""Stock checks and decrements against the product catalog."""

from enum import Enum

from retail_common import config
from retail_common.errors import (
    ConcurrencyConflictError,
    EntityNotFoundError,
    InsufficientStockError,
    ProductNotFoundError,
)
from retail_common.schemas import CamelModel, Product
from retail_common.store import EntityStore, StoredEntity

from .logger import logger


class ConcurrencyMode(str, Enum):
    """How the stock write-back is guarded.

    UNCHECKED writes unconditionally, so two checkouts that read the same
    stock level can both succeed and oversell. CONDITIONAL makes the write
    depend on the etag that was read and re-checks stock on conflict.
    """

    UNCHECKED = "unchecked"
    CONDITIONAL = "conditional"


class StockReservation(CamelModel):
    """Result of a successful stock decrement."""

    product_id: str
    product_name: str
    unit_price: float
    quantity: int
    previous_stock: int
    new_stock: int


class InventoryCoordinator:
    """Owns the read-check-write cycle on product stock."""

    def __init__(
        self,
        store: EntityStore,
        mode: ConcurrencyMode = ConcurrencyMode.CONDITIONAL,
        max_retries: int = config.INVENTORY_MAX_RETRIES,
    ):
        self._store = store
        self.mode = ConcurrencyMode(mode)
        self.max_retries = max_retries

    def get_product(self, product_id: str) -> Product:
        """Load a product from the catalog.

        Raises:
            ProductNotFoundError: If no such product exists.
        """
        return Product.model_validate(self._load(product_id).data)

    def reserve_stock(self, product_id: str, quantity: int) -> StockReservation:
        """Decrement a product's stock by ``quantity`` if enough is available.

        In CONDITIONAL mode a concurrent write is detected through the etag,
        the product is re-read and the check repeated, up to ``max_retries``
        times.

        Args:
            product_id: Catalog key of the product.
            quantity: Units to take out of stock.

        Returns:
            StockReservation: Stock levels before and after the decrement.

        Raises:
            ProductNotFoundError: The product does not exist.
            InsufficientStockError: Fewer than ``quantity`` units are available.
            ConcurrencyConflictError: The write kept conflicting after all retries.
        """
        conflicts = 0
        while True:
            entity = self._load(product_id)
            product = Product.model_validate(entity.data)
            if product.stock_available < quantity:
                logger.warning(
                    f"Insufficient stock | product_id={product_id} | available={product.stock_available} | "
                    f"requested={quantity}"
                )
                raise InsufficientStockError(product_id, quantity, product.stock_available)

            new_stock = product.stock_available - quantity
            updated = product.model_copy(update={"stock_available": new_stock})
            etag = entity.etag if self.mode is ConcurrencyMode.CONDITIONAL else None
            try:
                self._store.update(config.COLLECTION_PRODUCTS, product_id, updated.to_record(), etag=etag)
            except EntityNotFoundError as e:
                raise ProductNotFoundError(product_id) from e
            except ConcurrencyConflictError:
                conflicts += 1
                if conflicts > self.max_retries:
                    logger.error(f"Stock update for {product_id} still conflicting after {self.max_retries} retries")
                    raise
                logger.warning(f"Stock changed concurrently, retrying | product_id={product_id} | retry={conflicts}")
                continue

            logger.info(
                f"Stock reserved | product_id={product_id} | quantity={quantity} | "
                f"stock={product.stock_available}->{new_stock} | mode={self.mode.value}"
            )
            return StockReservation(
                product_id=product_id,
                product_name=product.product_name,
                unit_price=product.price,
                quantity=quantity,
                previous_stock=product.stock_available,
                new_stock=new_stock,
            )

    def release_stock(self, reservation: StockReservation) -> None:
        """Put reserved units back, e.g. when the order could not be submitted."""
        conflicts = 0
        while True:
            entity = self._load(reservation.product_id)
            product = Product.model_validate(entity.data)
            restored = product.model_copy(update={"stock_available": product.stock_available + reservation.quantity})
            try:
                self._store.update(
                    config.COLLECTION_PRODUCTS, reservation.product_id, restored.to_record(), etag=entity.etag
                )
            except ConcurrencyConflictError:
                conflicts += 1
                if conflicts > self.max_retries:
                    raise
                continue
            logger.info(f"Stock released | product_id={reservation.product_id} | quantity={reservation.quantity}")
            return

    def _load(self, product_id: str) -> StoredEntity:
        entity = self._store.get(config.COLLECTION_PRODUCTS, product_id)
        if entity is None:
            raise ProductNotFoundError(product_id)
        return entity
