"""Market data models: instruments and dividend-aware closing price series.

All price fields use Decimal (constructed from strings) with custom
serializers to prevent silent float conversion in JSON roundtrips.
"""

import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, field_serializer, field_validator, model_validator


class Instrument(BaseModel):
    """A tradable asset requested for analysis.

    Frozen because the instrument list is fixed once a run starts.
    """

    model_config = ConfigDict(frozen=True)

    symbol: str
    name: str = ""

    @field_validator("symbol")
    @classmethod
    def normalize_symbol(cls, value: str) -> str:
        """Symbols are compared uppercase and must not be blank."""
        normalized = value.strip().upper()
        if not normalized:
            msg = "symbol must not be blank"
            raise ValueError(msg)
        return normalized


class PricePoint(BaseModel):
    """A single daily close, with the dividend per share paid that day if any.

    Frozen because historical price data should never be mutated after creation.
    """

    model_config = ConfigDict(frozen=True)

    date: datetime.date
    close: Decimal
    dividend: Decimal | None = None

    @field_serializer("close")
    def serialize_decimal(self, value: Decimal) -> str:
        """Serialize Decimal fields as strings to preserve precision."""
        return str(value)

    @field_serializer("dividend")
    def serialize_optional_decimal(self, value: Decimal | None) -> str | None:
        """Serialize the optional dividend as a string, keeping None."""
        return None if value is None else str(value)


class PriceSeries(BaseModel):
    """Ordered price history for one instrument.

    Points are ascending by date with no duplicate dates; construction fails
    otherwise so downstream math can rely on the ordering.
    """

    model_config = ConfigDict(frozen=True)

    symbol: str
    points: list[PricePoint]

    @model_validator(mode="after")
    def validate_ordering(self) -> "PriceSeries":
        """Reject unsorted or duplicated dates."""
        for previous, current in zip(self.points, self.points[1:], strict=False):
            if current.date <= previous.date:
                msg = (
                    f"price series for {self.symbol} must be strictly ascending by date, "
                    f"got {current.date} after {previous.date}"
                )
                raise ValueError(msg)
        return self

    @property
    def is_empty(self) -> bool:
        """True when the series holds no observations."""
        return not self.points

    @property
    def last_close(self) -> Decimal | None:
        """Most recent closing price, or None for an empty series."""
        if not self.points:
            return None
        return self.points[-1].close


class RatePoint(BaseModel):
    """One published daily rate, as a fraction (0.0004 == 0.04% for the day)."""

    model_config = ConfigDict(frozen=True)

    date: datetime.date
    rate: Decimal

    @field_serializer("rate")
    def serialize_decimal(self, value: Decimal) -> str:
        """Serialize Decimal fields as strings to preserve precision."""
        return str(value)


class RateSeries(BaseModel):
    """Daily benchmark rates, ascending by date (e.g. the CDI)."""

    model_config = ConfigDict(frozen=True)

    name: str
    points: list[RatePoint]

    @model_validator(mode="after")
    def validate_ordering(self) -> "RateSeries":
        """Reject unsorted or duplicated dates."""
        for previous, current in zip(self.points, self.points[1:], strict=False):
            if current.date <= previous.date:
                msg = (
                    f"rate series {self.name} must be strictly ascending by date, "
                    f"got {current.date} after {previous.date}"
                )
                raise ValueError(msg)
        return self
