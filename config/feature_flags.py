"""
TechDraw - Feature Flags
========================

Feature Flags ermöglichen inkrementelle Rollouts und einfaches Rollback.
Neue Features werden mit Flag=False eingeführt und nach Validierung aktiviert.

Diese Datei enthält Debug-Flags und experimentelle Solver-Varianten.
"""

from typing import Dict

# Feature Flag Registry
# =====================
# Die Flags unten sind für aktives Debugging oder experimentelle Features.

FEATURE_FLAGS: Dict[str, bool] = {
    # Debug-Modi
    "constraint_solver_debug": False,  # Trace jedes einzelnen Constraint-Solves ([ConstraintSolver])
    "constraint_manager_debug": False,  # CRUD/Listener Trace ([ConstraintManager])

    # Solver-Varianten
    "symmetric_distance_solve": False,  # DISTANCE bewegt beide Entities gedämpft statt nur die zweite

    # Auto-Constraints
    "auto_constraints": True,  # Heuristische Vorschläge für Paare (PARALLEL, CONCENTRIC, ...)
}

# Snapshot der Defaults, damit Tests den Ausgangszustand wiederherstellen können
_DEFAULT_FLAGS: Dict[str, bool] = dict(FEATURE_FLAGS)


def is_enabled(flag: str) -> bool:
    """
    Prüft ob ein Feature-Flag aktiviert ist.

    Args:
        flag: Name des Feature-Flags

    Returns:
        True wenn aktiviert, False wenn nicht aktiviert oder unbekannt
    """
    return FEATURE_FLAGS.get(flag, False)


def set_flag(flag: str, value: bool) -> None:
    """
    Setzt ein Feature-Flag zur Laufzeit.
    Nützlich für Tests und Debugging.

    Args:
        flag: Name des Feature-Flags
        value: Neuer Wert
    """
    FEATURE_FLAGS[flag] = value


def reset_flags() -> None:
    """Setzt alle Flags auf ihre Default-Werte zurück."""
    FEATURE_FLAGS.clear()
    FEATURE_FLAGS.update(_DEFAULT_FLAGS)


def get_all_flags() -> Dict[str, bool]:
    """Gibt alle Feature-Flags zurück."""
    return FEATURE_FLAGS.copy()
