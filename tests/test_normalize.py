import json
from datetime import datetime
from pathlib import Path

from couponsync.ingest.normalize import awin_advertiser_ids, normalize_addrevenue, normalize_awin
from couponsync.utils.dates import parse_offer_date
from couponsync.utils.text import bullet_phrases, clean_brand_name, hashtags_for, slugify

FIXTURES = Path(__file__).parent / "fixtures" / "http"


def load_results(path: str) -> list:
    payload = json.loads((FIXTURES / path).read_text())
    return payload.get("results", payload.get("data"))


def test_addrevenue_joins_regional_campaigns(monkeypatch):
    monkeypatch.setenv("TIMEZONE", "Europe/Stockholm")
    offers = normalize_addrevenue(
        load_results("addrevenue/advertisers.json"),
        load_results("addrevenue/campaigns.json"),
        "SE",
    )
    assert [offer.source_id for offer in offers] == ["5001", "5002"]
    tent = offers[0]
    assert tent.brand_name == "Nordic Gear"
    assert tent.code == "TENT15"
    assert tent.coupon_type == "Code"
    assert tent.source == "addrevenue"
    # end of 2024-06-30 in Stockholm (UTC+2) as naive UTC
    assert tent.expires_at == datetime(2024, 6, 30, 21, 59, 59, 999999)
    assert tent.brand_meta.affiliate_link == "https://track.addrevenue.io/t?c=101"
    assert tent.brand_meta.site_link == "https://nordicgear.se"
    assert tent.brand_meta.popular is True
    sale = offers[1]
    assert sale.coupon_type == "Sale"
    assert sale.expires_at is None


def test_awin_prefers_programme_details():
    promotions = load_results("awin/promotions.json")
    programme = json.loads((FIXTURES / "awin/programme_4242.json").read_text())["programmeInfo"]
    offers = normalize_awin(promotions, {"4242": programme})
    assert len(offers) == 1
    offer = offers[0]
    assert offer.brand_name == "Glow Lab"
    assert offer.code == "GLOW20"
    assert offer.source_id == "900001"
    assert offer.brand_meta.site_link == "https://glowlab.co.uk"
    assert awin_advertiser_ids(promotions + promotions) == ["4242"]


def test_awin_without_programme_uses_promotion_advertiser():
    offers = normalize_awin([
        {"promotionId": 1, "advertiser": {"id": 9, "name": "Shop EU"}, "voucher": {}},
        {"promotionId": 2, "advertiser": {}},
    ])
    assert [(offer.brand_name, offer.code) for offer in offers] == [("Shop", "")]


def test_clean_brand_name_strips_repeated_country_codes():
    assert clean_brand_name("Glow Lab UK") == "Glow Lab"
    assert clean_brand_name("Nordic Gear SE EU") == "Nordic Gear"
    assert clean_brand_name("SE") == "SE"
    assert clean_brand_name("Sense") == "Sense"


def test_date_only_expiry_covers_the_whole_day(monkeypatch):
    monkeypatch.setenv("TIMEZONE", "UTC")
    assert parse_offer_date("2024-05-01", end_of_day=True) == datetime(2024, 5, 1, 23, 59, 59, 999999)
    assert parse_offer_date("2024-05-01") == datetime(2024, 5, 1)
    assert parse_offer_date("not a date") is None
    assert parse_offer_date("") is None


def test_text_helpers():
    assert slugify("Café Öland!") == "cafe-oland"
    assert hashtags_for("Glow Lab")[0] == "#glow-lab-discountcodes"
    assert len(hashtags_for("Glow Lab")) == 6
    content = 'Intro line\n- fast delivery\n- "great prices"\n* free returns\n- extra'
    assert bullet_phrases(content) == ["Fast Delivery", "Great Prices", "Free Returns"]
