"""Tests for configuration module."""

import pytest
import os
from unittest.mock import patch

from league_engine import config
from league_engine.models import Division


class TestConfigHelpers:
    """Tests for configuration helper functions."""

    def test_get_int_default(self):
        """Default value when environment variable not set."""
        with patch.dict(os.environ, {}, clear=False):
            assert config._get_int('NONEXISTENT_VAR', 42) == 42

    def test_get_int_from_env(self):
        """Parse integer from environment variable."""
        with patch.dict(os.environ, {'TEST_INT': '100'}, clear=False):
            assert config._get_int('TEST_INT', 42) == 100

    def test_get_int_invalid_value(self):
        """Handle non-integer values gracefully."""
        with patch.dict(os.environ, {'TEST_INT': 'not_a_number'}, clear=False):
            assert config._get_int('TEST_INT', 42) == 42

    def test_get_bool_true_variants(self):
        """Test 'true', '1', 'yes' variants."""
        for value in ['true', 'True', '1', 'yes', 'YES']:
            with patch.dict(os.environ, {'TEST_BOOL': value}, clear=False):
                assert config._get_bool('TEST_BOOL', False) is True, f"Failed for value: {value}"

    def test_get_bool_false_variants(self):
        """Anything else is false."""
        for value in ['false', '0', 'no', 'off']:
            with patch.dict(os.environ, {'TEST_BOOL': value}, clear=False):
                assert config._get_bool('TEST_BOOL', True) is False, f"Failed for value: {value}"

    def test_get_str(self):
        """Strings pass through, default when unset."""
        with patch.dict(os.environ, {'TEST_STR': 'stable'}, clear=False):
            assert config._get_str('TEST_STR', 'random') == 'stable'
        assert config._get_str('NONEXISTENT_VAR', 'random') == 'random'


class TestDefaults:
    """Tests for default settings."""

    def test_engine_defaults(self):
        """Engine settings have their documented defaults."""
        assert config.TIEBREAK_FALLBACK in ('random', 'stable')
        assert config.PLAYOFF_START_OFFSET_DAYS >= 0
        assert config.PLAYOFF_ROUND_INTERVAL_DAYS >= 0
        assert config.STANDINGS_CACHE_TTL_SECONDS >= 0

    def test_default_divisions_are_valid(self):
        """Every default division passes model validation."""
        divisions = [Division(**definition) for definition in config.DEFAULT_DIVISIONS]
        assert [d.level for d in divisions] == [1, 2, 3, 4, 5]

    def test_default_divisions_balance_movement(self):
        """Teams promoted out of a tier match teams relegated into it."""
        divisions = {d['level']: d for d in config.DEFAULT_DIVISIONS}

        for level in range(1, 5):
            upper, lower = divisions[level], divisions[level + 1]
            relegated = upper['relegate_slots'] * upper['group_count']
            direct = lower['promote_slots'] * lower['group_count']
            via_playoff = {
                'final_winner': 1,
                'finalists': 2,
                'opening_round_winners': (
                    lower['promote_playoff_slots'] * lower['group_count'] // 2
                ),
            }[lower['playoff_promotion']]
            assert relegated == direct + via_playoff, f"Unbalanced between levels {level} and {level + 1}"

    @pytest.mark.parametrize("level,groups", [(1, 1), (2, 1), (3, 2), (4, 4), (5, 8)])
    def test_group_counts(self, level, groups):
        """Default pyramid widens by level."""
        definition = next(d for d in config.DEFAULT_DIVISIONS if d['level'] == level)
        assert definition['group_count'] == groups
