"""
Tests für config/ (Feature-Flags, Toleranzen, Version)
=====================================================

Run: pytest test/test_config.py -v
"""

import pytest

from config.feature_flags import FEATURE_FLAGS, get_all_flags, is_enabled, reset_flags, set_flag
from config.tolerances import Tolerances, validate_tolerances
from config.version import VERSION, VERSION_STRING, get_version_info
from techdraw.solver import DistanceMode, SolverConfig

pytestmark = pytest.mark.fast


class TestFeatureFlags:

    def test_unknown_flag_is_disabled(self):
        assert is_enabled("gibt_es_nicht") is False

    def test_set_and_reset(self):
        set_flag("symmetric_distance_solve", True)
        assert is_enabled("symmetric_distance_solve")
        reset_flags()
        assert not is_enabled("symmetric_distance_solve")
        assert is_enabled("auto_constraints")

    def test_get_all_flags_returns_copy(self):
        flags = get_all_flags()
        flags["auto_constraints"] = False
        assert FEATURE_FLAGS["auto_constraints"] is True


class TestSolverConfigFromFlags:

    def test_defaults(self):
        cfg = SolverConfig.from_feature_flags()
        assert cfg.distance_mode == DistanceMode.MOVE_SECOND
        assert cfg.debug_mode is False
        assert cfg.max_iterations == Tolerances.SOLVER_MAX_ITERATIONS

    def test_flags_switch_mode(self):
        set_flag("symmetric_distance_solve", True)
        set_flag("constraint_solver_debug", True)
        cfg = SolverConfig.from_feature_flags()
        assert cfg.distance_mode == DistanceMode.SYMMETRIC
        assert cfg.debug_mode is True

    def test_overrides_win(self):
        set_flag("symmetric_distance_solve", True)
        cfg = SolverConfig.from_feature_flags(distance_mode=DistanceMode.MOVE_SECOND, max_iterations=5)
        assert cfg.distance_mode == DistanceMode.MOVE_SECOND
        assert cfg.max_iterations == 5


class TestTolerancesAndVersion:

    def test_default_tolerances_are_consistent(self):
        assert validate_tolerances() == []

    def test_version_info(self):
        info = get_version_info()
        assert info["version"] == VERSION
        assert info["version_string"].startswith(VERSION)
        assert VERSION_STRING == info["version_string"]
