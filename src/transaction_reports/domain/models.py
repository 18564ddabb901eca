from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


# A single product transaction as stored in the collection
class Transaction(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[int] = None
    title: str = ""
    description: str = ""
    price: float = 0.0
    dateOfSale: datetime
    sold: bool = False
    category: str = ""
    image: Optional[str] = None


# Bar-chart price range. Membership runs from `lower` up to the next range's
# lower bound, so fractional prices such as 100.5 stay in the lower range.
@dataclass(frozen=True)
class PriceRange:
    label: str
    lower: float


PRICE_RANGES: List[PriceRange] = [
    PriceRange("0-100", 0),
    PriceRange("101-200", 101),
    PriceRange("201-300", 201),
    PriceRange("301-400", 301),
    PriceRange("401-500", 401),
    PriceRange("501-600", 501),
    PriceRange("601-700", 601),
    PriceRange("701-800", 701),
    PriceRange("801-900", 801),
    PriceRange("901-above", 901),
]


@dataclass
class Statistics:
    totalSaleAmount: float
    soldItems: int
    unsoldItems: int


@dataclass
class RangeCount:
    range: str
    count: int


@dataclass
class CategoryCount:
    category: str
    count: int


@dataclass
class CombinedReport:
    statistics: Statistics
    barChart: List[RangeCount]
    pieChart: List[CategoryCount]
