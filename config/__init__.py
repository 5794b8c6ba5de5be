"""
TechDraw - Configuration Module
===============================

Zentrale Konfiguration für alle globalen Einstellungen.
"""

from .tolerances import Tolerances, solver_tolerance, solver_max_iterations, auto_parallel_angle
from .feature_flags import is_enabled, set_flag, reset_flags, get_all_flags, FEATURE_FLAGS
from .version import VERSION, VERSION_STRING, APP_NAME
