from __future__ import annotations

from offersync.models import CacheRecord, canonical_payload, parse_offers, same_content


def test_record_freshness_window() -> None:
    record = CacheRecord(fetched_at=1_000, payload={})
    assert record.is_fresh(now_ms=1_500, ttl_ms=1_000)
    assert not record.is_fresh(now_ms=2_000, ttl_ms=1_000)
    assert record.has_validators() is False
    assert CacheRecord(validator_timestamp="Mon", fetched_at=0, payload={}).has_validators()


def test_content_comparison_ignores_key_order() -> None:
    left = {"A": {"label": "A", "desc": ["x"]}, "B": {"label": "B", "desc": []}}
    right = {"B": {"desc": [], "label": "B"}, "A": {"desc": ["x"], "label": "A"}}
    assert same_content(left, right)
    assert not same_content(left, {"A": {"label": "A", "desc": ["y"]}})
    assert canonical_payload(None) == "{}"


def test_description_line_order_matters() -> None:
    assert not same_content({"A": {"desc": ["1", "2"]}}, {"A": {"desc": ["2", "1"]}})


def test_parse_offers_accepts_only_line_lists() -> None:
    offers = parse_offers(
        {
            "PROMO10": {"label": "Promo 10", "desc": ["5GB extra", "Minuti illimitati"]},
            "OLD": {"label": "Old", "desc": "not a list"},
            "NOLABEL": {"desc": []},
            "BROKEN": "text",
        }
    )

    assert list(offers) == ["PROMO10", "OLD", "NOLABEL"]
    assert offers["PROMO10"].desc == ["5GB extra", "Minuti illimitati"]
    assert offers["OLD"].label == "Old"
    assert offers["OLD"].desc == []
    assert offers["NOLABEL"].label == "NOLABEL"
