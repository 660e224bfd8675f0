from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field


class WishlistItem(BaseModel):
    product_id: str = Field(..., min_length=1)
    name: str = ""
    price: Optional[Decimal] = None
    image: str = ""
    category: Optional[str] = None
    added_at: Optional[datetime] = None
