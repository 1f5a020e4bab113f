"""
Tests for the humanization intensity ladder.

Usage:
    python -m pytest tests/test_intensity.py -v
"""
import pytest

from app.core.exceptions import AlreadyMaximalError, ValidationError
from app.core.intensity import IntensityLevel, all_levels, escalate


class TestIntensityOrder:
    """Levels are totally ordered off < light < medium < heavy"""

    def test_ascending_order(self):
        levels = all_levels()
        assert levels == [IntensityLevel.OFF, IntensityLevel.LIGHT, IntensityLevel.MEDIUM, IntensityLevel.HEAVY]
        for lower, higher in zip(levels, levels[1:]):
            assert lower < higher, f"{lower.value} should sort below {higher.value}"
            assert higher > lower
            assert lower <= higher and higher >= lower

    def test_order_is_not_alphabetical(self):
        """'heavy' < 'light' as strings, but not as intensities"""
        assert IntensityLevel.HEAVY > IntensityLevel.LIGHT
        assert max(all_levels()) is IntensityLevel.HEAVY
        assert sorted([IntensityLevel.HEAVY, IntensityLevel.OFF, IntensityLevel.MEDIUM]) == [
            IntensityLevel.OFF, IntensityLevel.MEDIUM, IntensityLevel.HEAVY
        ]

    def test_only_heavy_is_maximal(self):
        assert IntensityLevel.HEAVY.is_maximal
        assert not any(level.is_maximal for level in all_levels()[:-1])


class TestEscalate:
    """Tests for escalate()"""

    @pytest.mark.parametrize("level,expected", [
        (IntensityLevel.OFF, IntensityLevel.LIGHT),
        (IntensityLevel.LIGHT, IntensityLevel.MEDIUM),
        (IntensityLevel.MEDIUM, IntensityLevel.HEAVY),
    ])
    def test_returns_next_level(self, level, expected):
        assert escalate(level) is expected

    def test_heavy_raises_already_maximal(self):
        with pytest.raises(AlreadyMaximalError) as exc_info:
            escalate(IntensityLevel.HEAVY)
        assert exc_info.value.error_code == "ALREADY_MAXIMAL"
        assert exc_info.value.status_code == 409


class TestParse:
    """Tests for IntensityLevel.parse"""

    def test_parse_is_case_insensitive(self):
        assert IntensityLevel.parse(" Medium ") is IntensityLevel.MEDIUM
        assert IntensityLevel.parse("HEAVY") is IntensityLevel.HEAVY

    def test_parse_passes_levels_through(self):
        assert IntensityLevel.parse(IntensityLevel.LIGHT) is IntensityLevel.LIGHT

    @pytest.mark.parametrize("value", ["extreme", "", None, "2"])
    def test_parse_rejects_unknown_values(self, value):
        with pytest.raises(ValidationError):
            IntensityLevel.parse(value)

    def test_every_level_has_rate_description(self):
        assert IntensityLevel.OFF.rate_description == "No humanization"
        assert "2-3" in IntensityLevel.HEAVY.rate_description
