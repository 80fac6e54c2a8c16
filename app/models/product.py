from sqlalchemy import JSON, Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampMixin, generate_prefixed_id


def generate_product_id() -> str:
    return generate_prefixed_id("prod")


class Product(TimestampMixin, Base):
    """Catalog product. Only the stock columns are written by this service."""

    __tablename__ = "products"

    id: Mapped[str] = mapped_column(
        String(50),
        primary_key=True,
        default=generate_product_id,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    price: Mapped[float] = mapped_column(Float, nullable=False)
    stock: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    # Bumped on every color_size_stock write
    stock_version: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    # color -> size -> count
    color_size_stock: Mapped[dict[str, dict[str, int]] | None] = mapped_column(
        JSON,
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Product {self.id} {self.name}>"
