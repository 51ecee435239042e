"""Tests for the server-paginated total estimator."""

from __future__ import annotations

from records_browser.estimation import TotalEstimator
from records_browser.models import TotalEstimate


def _observe(estimator: TotalEstimator, page: int, count: int, size: int = 10, **kw):
    return estimator.observe(page_index=page, page_size=size, item_count=count, **kw)


def test_full_first_page_is_lower_bound():
    estimate = _observe(TotalEstimator(), page=1, count=10)
    assert estimate == TotalEstimate(value=11, exact=False)


def test_short_page_makes_total_exact():
    estimator = TotalEstimator()
    _observe(estimator, page=1, count=10)
    _observe(estimator, page=2, count=10)
    estimate = _observe(estimator, page=3, count=4)
    assert estimate == TotalEstimate(value=24, exact=True)


def test_short_page_without_history_is_exact():
    assert _observe(TotalEstimator(), page=3, count=4) == TotalEstimate(value=24, exact=True)


def test_lower_bound_never_decreases_when_paging_back():
    estimator = TotalEstimator()
    _observe(estimator, page=5, count=10)
    assert _observe(estimator, page=2, count=10) == TotalEstimate(value=51, exact=False)


def test_exact_total_survives_revisiting_full_pages():
    estimator = TotalEstimator()
    _observe(estimator, page=3, count=4)
    assert _observe(estimator, page=1, count=10) == TotalEstimate(value=24, exact=True)
    assert _observe(estimator, page=2, count=10) == TotalEstimate(value=24, exact=True)


def test_full_page_ending_on_exact_total_stays_exact():
    estimator = TotalEstimator()
    _observe(estimator, page=3, count=0)
    assert _observe(estimator, page=2, count=10) == TotalEstimate(value=20, exact=True)


def test_growth_past_exact_total_raises_value_and_stays_exact():
    estimator = TotalEstimator()
    _observe(estimator, page=2, count=5)
    estimate = _observe(estimator, page=2, count=10)
    assert estimate == TotalEstimate(value=20, exact=True)


def test_trusted_server_total_is_exact():
    estimate = _observe(
        TotalEstimator(), page=1, count=10, server_total=57, trust_server_total=True
    )
    assert estimate == TotalEstimate(value=57, exact=True)


def test_untrusted_server_total_ignored():
    estimate = _observe(TotalEstimator(), page=1, count=10, server_total=57)
    assert estimate == TotalEstimate(value=11, exact=False)


def test_trusted_total_never_below_visible_records():
    estimate = _observe(TotalEstimator(), page=2, count=10, server_total=3, trust_server_total=True)
    assert estimate.value == 20


def test_shape_change_resets():
    estimator = TotalEstimator()
    estimator.ensure_shape(("a",))
    _observe(estimator, page=3, count=4)
    estimator.ensure_shape(("a",))
    assert estimator.estimate.exact is True
    estimator.ensure_shape(("b",))
    assert estimator.estimate == TotalEstimate()
