import random
from datetime import timedelta

import pytest

from studygenie.services import scheduler
from studygenie.services.scheduler import InvalidQualityError, review


def test_scenarios_a_to_d(make_card, now):
    card = make_card()
    assert scheduler.success_rate(card) == 0

    # A: first perfect recall on a fresh card
    a = review(card, 5, now=now)
    assert a.review_data.review_count == 1
    assert a.review_data.interval == 1
    assert a.review_data.ease_factor == pytest.approx(2.6)
    assert a.stats.correct_answers == 1
    assert a.stats.times_reviewed == 1
    assert scheduler.success_rate(a) == 100

    # B: second success jumps to six days; quality 4 leaves ease unchanged
    b = review(a, 4, now=now)
    assert b.review_data.review_count == 2
    assert b.review_data.interval == 6
    assert b.review_data.ease_factor == pytest.approx(2.6)

    # C: a failure resets the streak but keeps ease
    c = review(b, 2, now=now)
    assert c.review_data.review_count == 0
    assert c.review_data.interval == 1
    assert c.stats.incorrect_answers == 1
    assert c.stats.times_reviewed == 3
    assert c.review_data.ease_factor == pytest.approx(b.review_data.ease_factor)
    assert scheduler.success_rate(c) == 67


def test_review_does_not_mutate_input(make_card, now):
    card = make_card()
    before = card.model_dump()
    review(card, 5, response_time_seconds=4.0, now=now)
    assert card.model_dump() == before


@pytest.mark.parametrize('quality', [-1, 6, 100, True, 2.5, '3', None])
def test_invalid_quality_rejected_without_change(make_card, now, quality):
    card = make_card(stats={'times_reviewed': 2, 'correct_answers': 2}, review_data={'review_count': 2, 'interval': 6})
    before = card.model_dump()
    with pytest.raises(InvalidQualityError):
        review(card, quality, response_time_seconds=3.0, now=now)
    assert card.model_dump() == before


@pytest.mark.parametrize('quality', [0, 1, 2])
def test_failure_resets_regardless_of_streak(make_card, now, quality):
    card = make_card(review_data={'review_count': 7, 'interval': 120, 'ease_factor': 2.9})
    out = review(card, quality, now=now)
    assert out.review_data.review_count == 0
    assert out.review_data.interval == 1
    assert out.review_data.ease_factor == pytest.approx(2.9)
    assert out.review_data.next_review == now + timedelta(days=1)


@pytest.mark.parametrize('quality', [3, 4, 5])
def test_first_success_after_reset_is_one_day(make_card, now, quality):
    card = make_card(review_data={'review_count': 0, 'interval': 1, 'ease_factor': 1.8})
    assert review(card, quality, now=now).review_data.interval == 1


def test_second_success_is_six_days_independent_of_ease(make_card, now):
    for ease in (1.3, 2.5, 3.4):
        card = make_card(review_data={'review_count': 1, 'interval': 1, 'ease_factor': ease})
        assert review(card, 3, now=now).review_data.interval == 6


def test_later_successes_multiply_previous_interval_by_previous_ease(make_card, now):
    card = make_card(review_data={'review_count': 2, 'interval': 6, 'ease_factor': 2.5})
    out = review(card, 3, now=now)
    assert out.review_data.interval == 15
    assert out.review_data.review_count == 3
    # ease drops only after the interval was computed
    assert out.review_data.ease_factor == pytest.approx(2.5 - 0.14)


def test_interval_rounds_half_up(make_card, now):
    card = make_card(review_data={'review_count': 2, 'interval': 6, 'ease_factor': 2.75})
    assert review(card, 5, now=now).review_data.interval == 17


def test_ease_factor_floor(make_card, now):
    card = make_card(review_data={'review_count': 3, 'interval': 10, 'ease_factor': 1.35})
    out = review(card, 3, now=now)
    assert out.review_data.ease_factor == 1.3
    assert out.review_data.interval == 14


def test_ease_delta_table():
    assert scheduler.ease_delta(5) == pytest.approx(0.1)
    assert scheduler.ease_delta(4) == pytest.approx(0.0)
    assert scheduler.ease_delta(3) == pytest.approx(-0.14)


def test_response_time_running_mean_uses_previous_count(make_card, now):
    card = make_card(stats={'times_reviewed': 3, 'correct_answers': 3, 'average_response_time': 4.0})
    out = review(card, 4, response_time_seconds=8.0, now=now)
    assert out.stats.average_response_time == pytest.approx(5.0)
    assert out.stats.times_reviewed == 4


def test_zero_response_time_counts_and_none_skips(make_card, now):
    card = make_card(stats={'times_reviewed': 1, 'correct_answers': 1, 'average_response_time': 6.0})
    assert review(card, 5, response_time_seconds=0, now=now).stats.average_response_time == pytest.approx(3.0)
    assert review(card, 5, now=now).stats.average_response_time == pytest.approx(6.0)


def test_next_review_and_last_reviewed_follow_now(make_card, now):
    card = make_card(review_data={'review_count': 1, 'interval': 1})
    later = now + timedelta(hours=5)
    first = review(card, 4, now=now)
    second = review(card, 4, now=later)
    assert first.review_data.interval == second.review_data.interval == 6
    assert first.review_data.ease_factor == second.review_data.ease_factor
    assert first.review_data.next_review == now + timedelta(days=6)
    assert second.review_data.next_review == later + timedelta(days=6)
    assert second.stats.last_reviewed == later


def test_invariants_hold_over_random_sessions(make_card, now):
    rng = random.Random(1234)
    for _ in range(20):
        card = make_card()
        t = now
        streak = 0
        for _ in range(30):
            q = rng.randint(0, 5)
            t = t + timedelta(days=rng.randint(0, 10))
            card = review(card, q, response_time_seconds=rng.uniform(0, 30), now=t)
            streak = streak + 1 if q >= 3 else 0
            s, d = card.stats, card.review_data
            assert s.correct_answers + s.incorrect_answers == s.times_reviewed
            assert d.ease_factor >= 1.3
            assert d.interval >= 1
            assert d.review_count == streak
            assert d.next_review == t + timedelta(days=d.interval)
