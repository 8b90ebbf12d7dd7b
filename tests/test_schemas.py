"""Tests for brief normalization of loosely shaped model output."""
from sitebrief.models.schemas import NOT_FOUND, Brief


def test_missing_fields_use_defaults():
    brief = Brief.model_validate({"title": None, "key_facts": None})
    assert brief.title == NOT_FOUND
    assert brief.key_facts == []
    assert brief.risks_gaps == []


def test_string_in_array_field_becomes_empty_list():
    brief = Brief.model_validate({"pricing_offers": "Not found", "sources": "Not found"})
    assert brief.pricing_offers == []
    assert brief.sources == []


def test_scalar_entries_are_wrapped_or_dropped():
    brief = Brief.model_validate(
        {
            "pricing_offers": ["Not found", "Pro: $49/mo", None, True, [1]],
            "key_facts": ["Founded in 1999", 42],
            "entities": [{"name": "Acme", "type": "company"}, ""],
        }
    )
    assert [offer.plan for offer in brief.pricing_offers] == ["Pro: $49/mo"]
    assert brief.pricing_offers[0].price == NOT_FOUND
    assert [fact.value for fact in brief.key_facts] == ["Founded in 1999", "42"]
    assert [entity.name for entity in brief.entities] == ["Acme"]


def test_single_item_object_becomes_list():
    brief = Brief.model_validate({"trust_signals": {"signal": "SOC 2", "evidence": "SOC 2 Type II"}})
    assert len(brief.trust_signals) == 1
    assert brief.trust_signals[0].signal == "SOC 2"
    assert brief.trust_signals[0].source_url == NOT_FOUND


def test_non_string_item_values_are_stringified():
    brief = Brief.model_validate(
        {"key_facts": [{"label": "Customers", "value": {"count": 500}, "evidence": None, "note": 1}]}
    )
    fact = brief.key_facts[0]
    assert fact.value == '{"count": 500}'
    assert fact.evidence == NOT_FOUND
    assert fact.model_extra == {"note": 1}


def test_risks_are_coerced_to_strings():
    assert Brief.model_validate({"risks_gaps": ["a", 2, None, {"k": "v"}]}).risks_gaps == ["a", "2", '{"k": "v"}']
    assert Brief.model_validate({"risks_gaps": "Single risk"}).risks_gaps == ["Single risk"]
    assert Brief.model_validate({"risks_gaps": 7}).risks_gaps == []


def test_text_fields_accept_non_strings():
    brief = Brief.model_validate({"title": ["Acme", "Inc"], "one_liner": 12, "executive_summary": True})
    assert brief.title == '["Acme", "Inc"]'
    assert brief.one_liner == "12"
    assert brief.executive_summary == "True"


def test_unknown_keys_are_kept():
    brief = Brief.model_validate({"title": "Acme", "competitors": ["Beta"]})
    assert brief.model_extra == {"competitors": ["Beta"]}
