"""Product read model, used only to check that products may be discounted."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from decision_engine.domain.models.money import Money


class ProductStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    DISCONTINUED = "Discontinued"


@dataclass(frozen=True)
class Product:
    product_id: str
    tenant_id: str
    name: str
    status: ProductStatus = ProductStatus.ACTIVE
    category: Optional[str] = None
    base_price: Optional[Money] = None
    cost: Optional[Money] = None

    def can_be_discounted(self) -> bool:
        return self.status == ProductStatus.ACTIVE
