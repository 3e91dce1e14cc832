"""Shared fixtures: fake time, MockTransport-backed clients and page builders."""

from typing import Optional

import httpx
import pytest

from hookah_harvester.ingest.http_client import FetchClient, RetryPolicy
from hookah_harvester.ingest.rate_limiter import RateLimiter

BASE_URL = "https://htreviews.org"


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSleep:
    """Records requested delays and moves the fake clock instead of waiting."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.calls: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.calls.append(delay)
        self.clock.advance(delay)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def fake_sleep(fake_clock):
    return FakeSleep(fake_clock)


@pytest.fixture
def make_client(fake_clock, fake_sleep):
    """Factory for a FetchClient answering through ``handler``."""

    def factory(handler, max_retries: int = 0, min_delay: float = 0.0, backoff: float = 0.5, exponential: bool = True):
        return FetchClient(
            base_url=BASE_URL,
            retry_policy=RetryPolicy(max_retries=max_retries, backoff=backoff, exponential=exponential),
            rate_limiter=RateLimiter(min_delay, clock=fake_clock, sleep=fake_sleep),
            transport=httpx.MockTransport(handler),
            sleep=fake_sleep,
        )

    return factory


class Pages:
    """Minimal copies of the catalogue's markup."""

    @staticmethod
    def brand_row(
        slug: Optional[str],
        name: str,
        country: str = "Россия",
        rating: str = "4.5",
        ratings: str = "120",
        reviews: str = "45",
        views: str = "319.1k",
        description: Optional[str] = "Описание бренда",
        image: Optional[str] = "/uploads/brand.png",
    ) -> str:
        href = f' href="/tobaccos/{slug}"' if slug else ""
        image_html = f'<div class="tobacco_list_item_image"><img data-src="{image}"></div>' if image else ""
        description_html = (
            f'<div class="description_content"><span>{description}</span></div>' if description else ""
        )
        return (
            '<div class="tobacco_list_item">'
            f"{image_html}"
            f'<a class="tobacco_list_item_slug"{href}><span>{name}</span><span class="country">{country}</span></a>'
            f'<div class="list_item_rating"><span>{rating}</span></div>'
            f'<div class="list_item_ratings_count"><span>{ratings}</span></div>'
            f'<div class="list_item_reviews"><span>{reviews}</span></div>'
            f'<div class="list_item_stats"><span>{views}</span></div>'
            f"{description_html}"
            "</div>"
        )

    @staticmethod
    def brands_page(top: list[str], other: list[str]) -> str:
        return (
            "<html><body>"
            f'<div class="tobacco_list_wrapper" data-active="1">{"".join(top)}</div>'
            f'<div class="tobacco_list_wrapper" data-active="0">{"".join(other)}</div>'
            "</body></html>"
        )

    @staticmethod
    def flavor_row(
        slug: str,
        name: str,
        name_alt: Optional[str] = None,
        line: str = "Классическая",
        description: Optional[str] = "Свежий вкус",
        image: Optional[str] = "/uploads/flavor.png",
        status: str = "Выпускается",
    ) -> str:
        alt_html = f"<span>{name_alt}</span>" if name_alt else ""
        image_html = f'<div class="tobacco_list_item_image"><img src="{image}"></div>' if image else ""
        description_html = (
            f'<div class="last_reviews_item_content"><span>{description}</span></div>' if description else ""
        )
        return (
            '<div class="tobacco_list_item">'
            f"{image_html}"
            '<div class="tobacco_list_item_name">'
            f'<a class="tobacco_list_item_slug" href="/tobaccos/{slug}"><span>{name}</span>{alt_html}</a>'
            "</div>"
            f'<div class="tobacco_list_item_line_slug"><a href="/tobaccos/line"><span>{line}</span></a></div>'
            f"{description_html}"
            f'<div class="tobacco_list_item_status"><span>{status}</span></div>'
            "</div>"
        )

    @staticmethod
    def listing(rows: list[str], count: Optional[int] = None, offset: int = 0, target: int = 20) -> str:
        meta = f' data-count="{count}" data-offset="{offset}" data-target="{target}"' if count is not None else ""
        return f'<html><body><div class="tobacco_list_items"{meta}>{"".join(rows)}</div></body></html>'

    @staticmethod
    def brand_page(
        slug: str = "sarma",
        name: str = "Сарма",
        brand_id: Optional[str] = "42",
        rows: Optional[list[str]] = None,
        count: Optional[int] = None,
    ) -> str:
        id_attr = f' data-id="{brand_id}"' if brand_id else ""
        meta = f' data-count="{count}" data-offset="0" data-target="20"' if count is not None else ""
        return (
            "<html><body>"
            f'<div class="object_wrapper"{id_attr}>'
            '<div class="object_image"><img data-src="/uploads/sarma.png"></div>'
            f'<div class="object_card_title"><h1>{name}</h1><span>Sarma</span></div>'
            '<div class="object_card_discr"><span>Российский бренд табака</span></div>'
            '<div class="object_info_item" data-id="1"><span>Статус</span><span>Выпускается</span></div>'
            '<div class="object_info_item"><span>Страна</span><div>Россия</div></div>'
            '<div class="object_info_item"><span>Год основания</span><div>2018</div></div>'
            '<div class="object_info_item"><span>Сайт</span><a href="https://sarma.example">sarma.example</a></div>'
            '<div class="score_graphic"><div data-rating="4.6"></div>'
            '<div data-stats="1"><div><span>120</span></div><div><span>45</span></div><div><span>1.9kk</span></div></div>'
            "</div>"
            '<div class="score_meter">'
            '<div class="score_meter_item" data-score="5" data-score-count="80"></div>'
            '<div class="score_meter_item" data-score="1" data-score-count="3"></div>'
            "</div>"
            '<div class="again_meter"><span>87%</span></div>'
            '<div class="brand_lines_item">'
            f'<a class="lines_item_name" href="/tobaccos/{slug}/klassicheskaya"><h3>Классическая</h3></a>'
            '<div class="lines_item_score"><span>4.5</span></div>'
            '<div class="lines_item_strength"><span>Средняя</span></div>'
            '<div class="lines_item_status"><span>Выпускается</span></div>'
            '<div class="lines_item_tobaccos"><span>53 вкуса</span></div>'
            '<div class="lines_item_description"><span>Основная линейка</span></div>'
            "</div>"
            f'<div class="tobacco_list_items"{meta}>{"".join(rows or [])}</div>'
            "</div>"
            "</body></html>"
        )

    @staticmethod
    def flavor_page(htreviews_id: Optional[str] = "1001", name: str = "Зима") -> str:
        id_attr = f' data-id="{htreviews_id}"' if htreviews_id else ""
        return (
            "<html><body>"
            f'<div class="object_wrapper"{id_attr}>'
            f'<div class="object_card_title"><h1>{name}</h1><span>Winter</span></div>'
            '<div class="object_card_discr"><span>Холодная мята</span></div>'
            '<div class="object_image"><img src="/uploads/zima.png"></div>'
            '<div class="object_info_item"><span>Бренд</span><a href="/tobaccos/sarma">Сарма</a></div>'
            '<div class="object_info_item"><span>Линейка</span>'
            '<a href="/tobaccos/sarma/klassicheskaya">Классическая</a></div>'
            '<div class="object_info_item"><span>Страна</span><span>Россия</span></div>'
            '<div class="object_info_item"><span>Крепость официальная</span><span>Средняя</span></div>'
            '<div class="object_info_item"><span>Крепость по оценкам</span><span>Средне-крепкая</span></div>'
            '<div class="object_info_item" data-id="1"><span>Статус</span><span>Выпускается</span></div>'
            '<div class="object_info_item"><span>Добавлен на сайт</span><span>15.03.2023</span></div>'
            '<div class="object_info_item"><span>Добавил</span><a href="/users/ivan">ivan</a></div>'
            '<div class="score_graphic"><div data-rating="4.8"></div>'
            '<div data-stats="1"><div><span>200</span></div><div><span>64</span></div><div><span>12.5k</span></div></div>'
            "</div>"
            '<div class="score_meter">'
            '<div class="score_meter_item"><span data-score="5">5</span><span data-score-count="150">150</span></div>'
            '<div class="score_meter_item">4: 25</div>'
            "</div>"
            '<div class="again_meter"><span>87.5%</span></div>'
            '<div class="tags_group"><div class="group_title"><span>Вкус</span></div>'
            '<div class="group_items">'
            '<a class="object_card_tag" href="/tobaccos?t=12"><span>#</span><span>Мята</span></a>'
            '<a class="object_card_tag" href="/tobaccos"><span>#</span><span>Холодок</span></a>'
            '<a class="object_card_tag" href="/tobaccos?t=12"><span>#</span><span>Мята</span></a>'
            "</div></div>"
            "</div>"
            "</body></html>"
        )


@pytest.fixture
def pages():
    return Pages
