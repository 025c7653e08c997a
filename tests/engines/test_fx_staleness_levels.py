"""
FX staleness classification: band edges and monotonicity.
"""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from ledger_engines.fx_staleness import (
    DEFAULT_STALENESS_CONFIG,
    FxStalenessConfig,
    StalenessLevel,
    classify_staleness,
    requires_review,
)

ORDER = [
    StalenessLevel.FRESH,
    StalenessLevel.WARNING,
    StalenessLevel.ACCEPTABLE,
    StalenessLevel.STALE,
]


class TestBands:
    @pytest.mark.parametrize(
        "age, expected",
        [
            (0, StalenessLevel.FRESH),
            (60, StalenessLevel.FRESH),
            (60.5, StalenessLevel.WARNING),
            (240, StalenessLevel.WARNING),
            (241, StalenessLevel.ACCEPTABLE),
            (1440, StalenessLevel.ACCEPTABLE),
            (1441, StalenessLevel.STALE),
        ],
    )
    def test_default_thresholds(self, age, expected):
        assert classify_staleness(age) == expected

    def test_negative_age_rejected(self):
        with pytest.raises(ValueError):
            classify_staleness(-1)

    def test_custom_thresholds(self):
        config = FxStalenessConfig(critical_minutes=5, warning_minutes=10, acceptable_minutes=15)
        assert classify_staleness(7, config) == StalenessLevel.WARNING
        assert classify_staleness(16, config) == StalenessLevel.STALE

    def test_thresholds_must_be_ordered(self):
        with pytest.raises(ValueError):
            FxStalenessConfig(critical_minutes=300, warning_minutes=240, acceptable_minutes=1440)


class TestReview:
    def test_only_stale_requires_review(self):
        assert [requires_review(level) for level in ORDER] == [False, False, False, True]


class TestMonotonic:
    @given(
        a=st.floats(min_value=0, max_value=10_000, allow_nan=False),
        b=st.floats(min_value=0, max_value=10_000, allow_nan=False),
    )
    def test_older_is_never_fresher(self, a, b):
        younger, older = sorted((a, b))
        assert ORDER.index(classify_staleness(younger, DEFAULT_STALENESS_CONFIG)) <= ORDER.index(
            classify_staleness(older, DEFAULT_STALENESS_CONFIG)
        )
