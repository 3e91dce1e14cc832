"""Tests for numeric, date and slug text rules."""

from datetime import date

import pytest

from hookah_harvester.parsers.text import (
    brand_slug_of,
    extract_slug,
    is_valid_slug,
    parse_bool,
    parse_date,
    parse_flavors_count,
    parse_int,
    parse_percentage,
    parse_rating,
    parse_tag_id,
    parse_views,
    parse_year,
    slug_to_path,
)


@pytest.mark.parametrize(
    "text,expected",
    [
        ("230.1k", 230100),
        ("319.1k", 319100),
        ("1.9kk", 1900000),
        ("1000", 1000),
        ("12K", 12000),
        ("1 234", 1234),
        ("", None),
        (None, None),
        ("abc", None),
    ],
)
def test_parse_views(text, expected):
    assert parse_views(text) == expected


def test_parse_views_rounds_half_up():
    assert parse_views("0.0005k") == 1
    assert parse_views("1.0000005kk") == 1000001


@pytest.mark.parametrize(
    "text,expected",
    [
        ("53 вкуса", 53),
        ("1 вкус", 1),
        ("120 вкусов", 120),
        ("7ВКУСОВ", 7),
        ("вкусов нет", None),
        ("53", None),
        (None, None),
    ],
)
def test_parse_flavors_count(text, expected):
    assert parse_flavors_count(text) == expected


def test_parse_percentage():
    assert parse_percentage("87%") == 87.0
    assert parse_percentage("Покурили бы снова: 87.5 %") == 87.5
    assert parse_percentage("87") is None
    assert parse_percentage("") is None


def test_parse_date():
    assert parse_date("15.03.2023") == date(2023, 3, 15)
    assert parse_date(" 01.01.2020 ") == date(2020, 1, 1)


@pytest.mark.parametrize("text", ["31.02.2023", "2023-03-15", "15.3.2023", "вчера", "", None])
def test_parse_date_rejects(text):
    assert parse_date(text) is None


def test_parse_rating_bounds():
    assert parse_rating("4.6") == 4.6
    assert parse_rating("Рейтинг 3") == 3.0
    assert parse_rating("0") == 0.0
    assert parse_rating("5.1") is None
    assert parse_rating("-1") is None
    assert parse_rating("нет оценок") is None


def test_parse_int_reads_leading_number():
    assert parse_int("42 отзыва") == 42
    assert parse_int(" 7") == 7
    assert parse_int("отзывов 42") is None


def test_parse_year():
    assert parse_year("2018") == 2018
    assert parse_year("18") is None
    assert parse_year("2018 г.") is None


def test_parse_bool():
    assert parse_bool("Да") is True
    assert parse_bool("no") is False
    assert parse_bool("может быть") is None


def test_parse_tag_id():
    assert parse_tag_id("/tobaccos?t=12") == 12
    assert parse_tag_id("/tobaccos?sort=new&t=7") == 7
    assert parse_tag_id("/tobaccos") is None


@pytest.mark.parametrize(
    "url,expected",
    [
        ("/tobaccos/sarma", "sarma"),
        ("/tobaccos/sarma/klassicheskaya", "sarma/klassicheskaya"),
        ("https://htreviews.org/tobaccos/sarma/klassicheskaya/zima", "sarma/klassicheskaya/zima"),
        ("/tobaccos/sarma/?offset=20", "sarma"),
        ("tobaccos/sarma#reviews", "sarma"),
        ("/tobaccos/", None),
        ("", None),
        (None, None),
    ],
)
def test_extract_slug(url, expected):
    assert extract_slug(url) == expected


@pytest.mark.parametrize("slug", ["sarma", "sarma/klassicheskaya", "sarma/klassicheskaya/zima"])
def test_slug_path_round_trip(slug):
    assert slug_to_path(slug) == f"/tobaccos/{slug}"
    assert extract_slug(slug_to_path(slug)) == slug


def test_brand_slug_of():
    assert brand_slug_of("sarma/klassicheskaya/zima") == "sarma"
    assert brand_slug_of(None) is None


def test_is_valid_slug():
    assert is_valid_slug("dark-side")
    assert not is_valid_slug("Dark Side")
    assert not is_valid_slug("sarma/zima")
    assert is_valid_slug("sarma/zima", allow_path=True)
    assert not is_valid_slug("sarma//zima", allow_path=True)
    assert not is_valid_slug("")
