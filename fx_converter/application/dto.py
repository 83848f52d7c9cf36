"""
Data Transfer Objects for the application layer.
"""

from dataclasses import asdict, dataclass, field
from decimal import Decimal
from typing import List, Mapping, Optional, Union

from fx_converter.domain.exceptions import ValidationError

Amount = Union[int, float, Decimal]


@dataclass(frozen=True)
class ConversionRequestDTO:
    """Request DTO for one conversion in a batch."""
    amount: Amount
    from_currency: str
    to_currency: str

    @classmethod
    def coerce(cls, item: Union["ConversionRequestDTO", Mapping]) -> "ConversionRequestDTO":
        """Accept either a DTO or a mapping with ``amount``/``from``/``to`` keys."""
        if isinstance(item, cls):
            return item
        try:
            return cls(amount=item["amount"], from_currency=item["from"], to_currency=item["to"])
        except (KeyError, TypeError) as e:
            raise ValidationError(f"Conversion request must provide amount, from and to: {item!r}") from e


@dataclass
class RateSyncResultDTO:
    """Result DTO for the cache warming task."""
    success: bool
    rates_synced: int
    currencies_processed: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    provider_used: Optional[str] = None

    def as_dict(self) -> dict:
        return asdict(self)
