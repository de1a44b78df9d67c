from decimal import Decimal

import pytest

from classifier import AlertLevel, classify, ratio


def D(value):
    return Decimal(value)


@pytest.mark.parametrize("limit", ["0", "-1", "-2500.50"])
@pytest.mark.parametrize("spent", ["0", "10", "999999"])
def test_non_positive_limit_is_never_an_alert(spent, limit):
    assert classify(D(spent), D(limit)) is AlertLevel.NONE


@pytest.mark.parametrize(
    "spent, limit, expected",
    [
        ("0", "100", AlertLevel.NONE),
        ("89.99", "100", AlertLevel.NONE),
        ("90", "100", AlertLevel.NEAR),
        ("99.99", "100", AlertLevel.NEAR),
        ("100", "100", AlertLevel.EXCEEDED),
        ("250", "100", AlertLevel.EXCEEDED),
        ("4600", "5000", AlertLevel.NEAR),
        ("2500", "2000", AlertLevel.EXCEEDED),
    ],
)
def test_classify_levels(spent, limit, expected):
    assert classify(D(spent), D(limit)) is expected


def test_ratio_rounds_half_up_to_four_places():
    assert ratio(D("4600"), D("5000")) == D("0.9200")
    assert ratio(D("2500"), D("2000")) == D("1.2500")
    assert ratio(D("1"), D("3")) == D("0.3333")
    assert ratio(D("2"), D("3")) == D("0.6667")


def test_rounding_can_lift_ratio_onto_threshold():
    # 0.899995 rounds to 0.9000
    assert classify(D("899995"), D("1000000")) is AlertLevel.NEAR
    assert classify(D("999995"), D("1000000")) is AlertLevel.EXCEEDED


def test_custom_thresholds():
    assert classify(D("75"), D("100"), D("0.75"), D("1.10")) is AlertLevel.NEAR
    assert classify(D("105"), D("100"), D("0.75"), D("1.10")) is AlertLevel.NEAR
    assert classify(D("110"), D("100"), D("0.75"), D("1.10")) is AlertLevel.EXCEEDED


def test_classify_is_deterministic():
    first = classify(D("950"), D("1000"))
    second = classify(D("950"), D("1000"))
    assert first is second is AlertLevel.NEAR
