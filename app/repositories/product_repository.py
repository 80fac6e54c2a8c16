import logging

from sqlalchemy import case, select, update
from sqlalchemy.orm.exc import StaleDataError

from app.models.product import Product
from app.repositories.base import BaseRepository
from app.services.inventory_service import decrement_color_size_stock, uses_color_size_stock

logger = logging.getLogger(__name__)

MATRIX_UPDATE_ATTEMPTS = 5


class ProductRepository(BaseRepository[Product]):
    model = Product

    async def _load_for_update(self, product_id: str) -> Product | None:
        # populate_existing so a re-read replaces stale identity-map state
        result = await self.session.execute(
            select(Product)
            .where(Product.id == product_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def decrement_stock(
        self,
        product_id: str,
        quantity: int,
        color: str | None = None,
        size: str | None = None,
    ) -> bool:
        """
        Decrement stock for one ordered line, floored at zero.

        The color/size cell is used when the line has both and the product
        keeps a matrix; otherwise the flat stock column. Returns False when
        the product no longer exists.
        """
        product = await self._load_for_update(product_id)
        if product is None:
            return False

        if uses_color_size_stock(product, color, size):
            return await self._decrement_matrix(product, color, size, quantity)

        remaining = Product.stock - quantity
        await self.session.execute(
            update(Product)
            .where(Product.id == product_id)
            .values(stock=case((remaining < 0, 0), else_=remaining))
            .execution_options(synchronize_session=False)
        )
        return True

    async def _decrement_matrix(self, product: Product, color: str, size: str, quantity: int) -> bool:
        """
        Write the decremented matrix only if ``stock_version`` is unchanged
        since the read; on a mismatch re-read and try again.
        """
        product_id = product.id
        for _ in range(MATRIX_UPDATE_ATTEMPTS):
            if color not in (product.color_size_stock or {}):
                logger.warning(
                    f"[inventory] {product_id} has no stock row for color={color}, nothing decremented"
                )
                return True

            updated = decrement_color_size_stock(product.color_size_stock, color, size, quantity)
            result = await self.session.execute(
                update(Product)
                .where(Product.id == product_id, Product.stock_version == product.stock_version)
                .values(color_size_stock=updated, stock_version=Product.stock_version + 1)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                return True

            logger.info(f"[inventory] {product_id} stock changed concurrently, retrying")
            product = await self._load_for_update(product_id)
            if product is None:
                return False

        raise StaleDataError(
            f"stock matrix for {product_id} kept changing, gave up after {MATRIX_UPDATE_ATTEMPTS} attempts"
        )
