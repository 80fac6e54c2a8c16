from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class BasketItemType(str, Enum):
    PHYSICAL = "PHYSICAL"
    VIRTUAL = "VIRTUAL"


class BasketItem(BaseModel):
    """One gateway-facing basket line. Built per request, never persisted."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    category1: str
    item_type: BasketItemType = Field(..., alias="itemType")
    price: Decimal

    def to_gateway(self) -> dict:
        data = self.model_dump(by_alias=True)
        data["itemType"] = self.item_type.value
        return data
