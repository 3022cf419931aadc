"""
Entity Record Schema

A token record as supplied by the upstream collaborator (fetch jobs, REST
payloads, JSON dumps). Records are frozen once validated: the pipeline reads
them and never writes back.

Keys are accepted in snake_case or in the collaborator's camelCase
("marketCap", "launchDate", "priceChange24h").
"""

from datetime import date, datetime
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


# Scalar values allowed in the extension map
ExtraValue = Union[str, int, float, bool]


class _RecordModel(BaseModel):
    """Shared model settings for entity sub-records"""
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        extra="ignore",
    )


# ============================================================================
# Sub-models
# ============================================================================

class AuditInfo(_RecordModel):
    """Security audit summary"""
    status: str
    report: Optional[str] = None
    score: Optional[float] = None


class RiskInfo(_RecordModel):
    """Risk assessment"""
    level: str
    factors: List[str] = Field(default_factory=list)


class Analytics(_RecordModel):
    """Market analytics"""
    price_change_24h: Optional[float] = Field(default=None, alias="priceChange24h")
    price_change_7d: Optional[float] = Field(default=None, alias="priceChange7d")
    price_change_30d: Optional[float] = Field(default=None, alias="priceChange30d")
    volatility: Optional[float] = None
    liquidity_score: Optional[float] = None


# ============================================================================
# Main Model
# ============================================================================

class EntityRecord(_RecordModel):
    """
    Token metadata record.

    Required: id, name, symbol. Everything else is optional and is omitted
    from the rendered text when absent.
    """
    # Identity
    id: str = Field(..., min_length=1, description="Unique token identifier")
    name: str = Field(..., min_length=1)
    symbol: str = Field(..., min_length=1)
    description: Optional[str] = None

    # Technical details
    contract_address: Optional[str] = None
    network: Optional[str] = None
    total_supply: Optional[str] = None
    decimals: Optional[int] = None

    # Market data
    price: Optional[float] = None
    market_cap: Optional[float] = None
    volume_24h: Optional[float] = Field(default=None, alias="volume24h")
    holders: Optional[int] = None

    # Links
    website: Optional[str] = None
    whitepaper: Optional[str] = None
    github: Optional[str] = None
    twitter: Optional[str] = None
    telegram: Optional[str] = None
    discord: Optional[str] = None

    tags: List[str] = Field(default_factory=list)
    launch_date: Optional[date] = None

    audit: Optional[AuditInfo] = None
    risk: Optional[RiskInfo] = None
    analytics: Optional[Analytics] = None

    # Explicit extension map (schema v1 has no other open-ended fields)
    additional: Dict[str, ExtraValue] = Field(default_factory=dict)

    @field_validator("id", "name", "symbol")
    @classmethod
    def _strip_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("total_supply", mode="before")
    @classmethod
    def _supply_as_text(cls, value):
        # Supplies routinely overflow float precision, keep them verbatim
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("launch_date", mode="before")
    @classmethod
    def _launch_date_from_timestamp(cls, value):
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, str) and "T" in value:
            return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
        return value
