import pytest

from app.services.rating import (
    average_score,
    round_score,
    score_distribution,
    score_statistics,
    thresholded_average,
)


@pytest.mark.parametrize("value,expected", [
    (4.4, 4.4),
    (4.25, 4.3),
    (4.24, 4.2),
    (3.0, 3.0),
    (13 / 3, 4.3),
])
def test_round_score(value, expected):
    assert round_score(value) == expected


def test_average_score():
    assert average_score([]) is None
    assert average_score([5, 4, 4, 4]) == 4.3


def test_thresholded_average():
    assert thresholded_average([5, 5, 5, 5]) is None
    assert thresholded_average([1, 2, 3, 4, 5]) == 3.0


def test_score_distribution_counts_every_score():
    assert score_distribution([]) == {1: 0, 2: 0, 3: 0, 4: 0, 5: 0}
    assert score_distribution([5, 5, 4, 3, 5]) == {1: 0, 2: 0, 3: 1, 4: 1, 5: 3}


def test_score_statistics():
    assert score_statistics([5, 5, 4, 3, 5]) == {
        "highest_score": 5,
        "lowest_score": 3,
        "ratings_above_4": 4,
        "ratings_below_3": 0,
    }
    assert score_statistics([1, 2, 3])["ratings_below_3"] == 2


def test_score_distribution_skips_unknown_scores():
    assert score_distribution([0, 5, 7, 5]) == {1: 0, 2: 0, 3: 0, 4: 0, 5: 2}
