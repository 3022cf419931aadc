"""
Tests for entity record schema, text rendering and loading.
"""

import json
from datetime import date

import pytest


SAMPLE = {
    "id": "bitcoin-btc",
    "name": "Bitcoin",
    "symbol": "BTC",
    "description": "Decentralized digital currency.",
    "network": "Bitcoin",
    "totalSupply": 21000000,
    "decimals": 8,
    "price": 45000,
    "marketCap": 945000000000,
    "volume24h": 25000000000.5,
    "holders": 45000000,
    "website": "https://bitcoin.org",
    "twitter": "@bitcoin",
    "discord": "btc",
    "tags": ["currency", "store-of-value"],
    "launchDate": "2009-01-03T00:00:00.000Z",
    "audit": {"status": "N/A - Original blockchain", "score": 100},
    "risk": {"level": "Low", "factors": ["Regulatory"]},
    "analytics": {"priceChange24h": 2.5, "volatility": 0.45},
    "additional": {"consensus": "PoW", "halving": True},
}


class TestEntityRecord:
    def test_accepts_camel_case_payload(self):
        from tokenrag.common.schemas import EntityRecord

        entity = EntityRecord.model_validate(SAMPLE)

        assert entity.market_cap == 945000000000
        assert entity.volume_24h == 25000000000.5
        assert entity.total_supply == "21000000"
        assert entity.launch_date == date(2009, 1, 3)
        assert entity.analytics.price_change_24h == 2.5
        assert entity.audit.score == 100

    def test_accepts_snake_case_payload(self):
        from tokenrag.common.schemas import EntityRecord

        entity = EntityRecord(id="eth", name="Ethereum", symbol="ETH", market_cap=1.0, launch_date="2015-07-30")

        assert entity.market_cap == 1.0
        assert entity.launch_date == date(2015, 7, 30)

    def test_records_are_frozen(self):
        from pydantic import ValidationError as PydanticValidationError
        from tokenrag.common.schemas import EntityRecord

        entity = EntityRecord(id="eth", name="Ethereum", symbol="ETH")
        with pytest.raises(PydanticValidationError):
            entity.name = "Other"

    def test_blank_required_field_rejected(self):
        from pydantic import ValidationError as PydanticValidationError
        from tokenrag.common.schemas import EntityRecord

        with pytest.raises(PydanticValidationError):
            EntityRecord(id="eth", name="   ", symbol="ETH")

    def test_unknown_keys_ignored(self):
        from tokenrag.common.schemas import EntityRecord

        entity = EntityRecord.model_validate({"id": "a", "name": "A", "symbol": "AA", "_id": "mongo"})
        assert entity.id == "a"


class TestRenderEntityText:
    def test_full_record_sections_in_order(self):
        from tokenrag.common.schemas import EntityRecord, render_entity_text

        text = render_entity_text(EntityRecord.model_validate(SAMPLE))
        lines = text.split("\n")

        assert lines[0] == "Token: Bitcoin (BTC)"
        assert "Total Supply: 21000000" in lines
        assert "Price: $45000" in lines
        assert "Market Cap: $945,000,000,000" in lines
        assert "24h Volume: $25,000,000,000.5" in lines
        assert "Holders: 45,000,000" in lines
        assert "Social Media: Twitter: @bitcoin, Discord: btc" in lines
        assert "Tags: currency, store-of-value" in lines
        assert "Launch Date: Sat Jan 03 2009" in lines
        assert "Audit Score: 100/100" in lines
        assert "Risk Factors: Regulatory" in lines
        assert "Analytics: 24h Change: 2.5%, Volatility: 0.45" in lines
        assert lines[-1] == "Additional Info: consensus: PoW, halving: True"

        labels = [line.split(":")[0] for line in lines]
        assert labels.index("Description") < labels.index("Network") < labels.index("Price")
        assert labels.index("Website") < labels.index("Audit Status") < labels.index("Risk Level")

    def test_absent_fields_omitted(self):
        from tokenrag.common.schemas import EntityRecord, render_entity_text

        text = render_entity_text(EntityRecord(id="x", name="Xcoin", symbol="XC"))
        assert text == "Token: Xcoin (XC)"

    def test_zero_price_is_rendered(self):
        from tokenrag.common.schemas import EntityRecord, render_entity_text

        text = render_entity_text(EntityRecord(id="x", name="Xcoin", symbol="XC", price=0))
        assert "Price: $0" in text


class TestDataLoader:
    def test_load_array_file(self, tmp_path):
        from tokenrag.common.data_loader import load_entities_from_file

        path = tmp_path / "tokens.json"
        path.write_text(json.dumps([SAMPLE, {"id": "eth", "name": "Ethereum", "symbol": "ETH"}]))

        entities = load_entities_from_file(path)
        assert [e.id for e in entities] == ["bitcoin-btc", "eth"]

    def test_load_tokens_object_file(self, tmp_path):
        from tokenrag.common.data_loader import load_entities_from_file

        path = tmp_path / "tokens.json"
        path.write_text(json.dumps({"tokens": [SAMPLE]}))

        assert len(load_entities_from_file(path)) == 1

    def test_missing_required_field_names_index(self):
        from tokenrag.common.data_loader import parse_entities
        from tokenrag.common.errors import ValidationError

        with pytest.raises(ValidationError, match="index 1"):
            parse_entities([SAMPLE, {"id": "eth", "name": "Ethereum"}])

    def test_wrong_shape_rejected(self):
        from tokenrag.common.data_loader import parse_entities
        from tokenrag.common.errors import ValidationError

        with pytest.raises(ValidationError):
            parse_entities({"items": []})

    def test_missing_file(self, tmp_path):
        from tokenrag.common.data_loader import load_entities_from_file

        with pytest.raises(FileNotFoundError):
            load_entities_from_file(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path):
        from tokenrag.common.data_loader import load_entities_from_file
        from tokenrag.common.errors import ValidationError

        path = tmp_path / "tokens.json"
        path.write_text("{not json")
        with pytest.raises(ValidationError):
            load_entities_from_file(path)
