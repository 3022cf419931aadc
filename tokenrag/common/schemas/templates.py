"""
Entity Text Templates

Renders an EntityRecord into labeled text sections for embedding.
The rendered text is the SINGLE SOURCE OF TRUTH for what gets chunked and
retrieved: absent fields are omitted entirely, so the output is not
fixed-width.
"""

from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from .entity_record import EntityRecord, Analytics


def _format_number(value: float) -> str:
    """Plain number: integral floats lose their trailing '.0'"""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def _format_grouped(value: float) -> str:
    """Thousands-grouped number (1,234,567 or 1,234.567)"""
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,.3f}".rstrip("0").rstrip(".")


def _format_social(entity: "EntityRecord") -> Optional[str]:
    """Format social links into one line"""
    links = []
    if entity.twitter:
        links.append(f"Twitter: {entity.twitter}")
    if entity.telegram:
        links.append(f"Telegram: {entity.telegram}")
    if entity.discord:
        links.append(f"Discord: {entity.discord}")
    return ", ".join(links) if links else None


def _format_analytics(analytics: "Analytics") -> Optional[str]:
    """Format analytics into one line"""
    parts = []
    if analytics.price_change_24h is not None:
        parts.append(f"24h Change: {_format_number(analytics.price_change_24h)}%")
    if analytics.price_change_7d is not None:
        parts.append(f"7d Change: {_format_number(analytics.price_change_7d)}%")
    if analytics.price_change_30d is not None:
        parts.append(f"30d Change: {_format_number(analytics.price_change_30d)}%")
    if analytics.volatility is not None:
        parts.append(f"Volatility: {_format_number(analytics.volatility)}")
    if analytics.liquidity_score is not None:
        parts.append(f"Liquidity Score: {_format_number(analytics.liquidity_score)}")
    return ", ".join(parts) if parts else None


def render_entity_text(entity: "EntityRecord") -> str:
    """
    Render an EntityRecord to its labeled text sections.

    Args:
        entity: Validated EntityRecord

    Returns:
        Newline-joined "Label: value" lines in a fixed order
    """
    sections: List[str] = [f"Token: {entity.name} ({entity.symbol})"]

    if entity.description:
        sections.append(f"Description: {entity.description}")

    # Technical details
    if entity.contract_address:
        sections.append(f"Contract Address: {entity.contract_address}")
    if entity.network:
        sections.append(f"Network: {entity.network}")
    if entity.total_supply:
        sections.append(f"Total Supply: {entity.total_supply}")
    if entity.decimals is not None:
        sections.append(f"Decimals: {entity.decimals}")

    # Market data
    if entity.price is not None:
        sections.append(f"Price: ${_format_number(entity.price)}")
    if entity.market_cap is not None:
        sections.append(f"Market Cap: ${_format_grouped(entity.market_cap)}")
    if entity.volume_24h is not None:
        sections.append(f"24h Volume: ${_format_grouped(entity.volume_24h)}")
    if entity.holders is not None:
        sections.append(f"Holders: {_format_grouped(entity.holders)}")

    # Links
    if entity.website:
        sections.append(f"Website: {entity.website}")
    if entity.whitepaper:
        sections.append(f"Whitepaper: {entity.whitepaper}")
    if entity.github:
        sections.append(f"GitHub: {entity.github}")

    social = _format_social(entity)
    if social:
        sections.append(f"Social Media: {social}")

    if entity.tags:
        sections.append(f"Tags: {', '.join(entity.tags)}")

    if entity.launch_date:
        sections.append(f"Launch Date: {entity.launch_date.strftime('%a %b %d %Y')}")

    if entity.audit:
        sections.append(f"Audit Status: {entity.audit.status}")
        if entity.audit.score is not None:
            sections.append(f"Audit Score: {_format_number(entity.audit.score)}/100")
        if entity.audit.report:
            sections.append(f"Audit Report: {entity.audit.report}")

    if entity.risk:
        sections.append(f"Risk Level: {entity.risk.level}")
        if entity.risk.factors:
            sections.append(f"Risk Factors: {', '.join(entity.risk.factors)}")

    if entity.analytics:
        analytics = _format_analytics(entity.analytics)
        if analytics:
            sections.append(f"Analytics: {analytics}")

    if entity.additional:
        extra = ", ".join(f"{key}: {value}" for key, value in entity.additional.items())
        sections.append(f"Additional Info: {extra}")

    return "\n".join(sections)
