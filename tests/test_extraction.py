from __future__ import annotations

from datetime import datetime, timedelta, timezone

from core.extraction import DEFAULT_TITLE, extract_budget, extract_title
from core.filters import ChannelFilter, within_lookback
from core.models import ChannelSource


def test_title_is_first_non_blank_line() -> None:
    assert extract_title("\n\n  Нужен лендинг  \nподробности") == "Нужен лендинг"
    assert extract_title("x" * 150) == "x" * 100
    assert extract_title("   ") == DEFAULT_TITLE


def test_budget_range_and_currencies() -> None:
    budget = extract_budget("Бюджет: 5000-10000 руб")
    assert (budget.minimum, budget.maximum, budget.currency) == (5000, 10000, "RUB")

    budget = extract_budget("Budget 300 $")
    assert (budget.minimum, budget.maximum, budget.currency) == (300, 300, "USD")

    budget = extract_budget("оплата: 700 евро")
    assert budget.currency == "EUR"


def test_budget_without_currency_is_ignored() -> None:
    assert extract_budget("Бюджет обсуждается") is None
    assert extract_budget("Бюджет 5000") is None


def test_stop_word_rejects_every_keyword() -> None:
    channel_filter = ChannelFilter(keywords=("веб", "сайт"), stop_words=("тест",))

    assert channel_filter.keyword_hits("Веб сайт под ключ") == ["веб", "сайт"]
    assert channel_filter.keyword_hits("веб сайт, тестовое задание") == []


def test_blank_keywords_are_dropped() -> None:
    channel = ChannelSource(
        id=1, handle="@a", topic_key="web", topic_label="Web", keywords=("", "  ", "Веб")
    )

    channel_filter = ChannelFilter.for_channel(channel)

    assert channel_filter.keywords == ("веб",)
    assert not channel_filter.accepts("дизайн")


def test_within_lookback_is_inclusive() -> None:
    cutoff = datetime(2024, 5, 1, 11, 30, tzinfo=timezone.utc)

    assert within_lookback(cutoff, cutoff)
    assert not within_lookback(cutoff - timedelta(seconds=1), cutoff)
