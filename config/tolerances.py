"""
TechDraw - Zentralisierte Toleranz-Konfiguration
================================================

Alle Toleranzen und Schwellwerte des Constraint-Kerns an einem Ort.

Toleranz-Philosophie:
- Solver: 1e-6 - ein Constraint gilt als erfüllt, wenn sein Residuum darunter liegt
- Auto-Constraints: großzügig (15°, 10 Einheiten) - sie raten Absicht, nicht Präzision
- Vergleich: 1e-9 - numerische Stabilität (Division durch Null etc.)

Verwendung:
    from config.tolerances import Tolerances

    # Direkt als Klassenvariablen
    tol = Tolerances.SOLVER_TOLERANCE

    # Oder via Convenience-Funktionen
    from config.tolerances import solver_tolerance
    tol = solver_tolerance()
"""

import math


class Tolerances:
    """
    Zentrale Toleranz-Konstanten für den Constraint-Kern.

    Kategorien:
    - SOLVER_*: Constraint-Solver (Abbruchkriterien, Dämpfung)
    - AUTO_*: Auto-Constraint Heuristiken
    - EPSILON_*: Numerische Stabilität
    """

    # =========================================================================
    # Constraint-Solver
    # =========================================================================

    # Residuum unterhalb dessen ein Constraint als erfüllt gilt
    SOLVER_TOLERANCE = 1e-6

    # Maximale Iterationen pro Constraint (iterative Korrekturen)
    SOLVER_MAX_ITERATIONS = 100

    # Dämpfung für iterative Korrekturen (0 < d <= 1)
    # Zu klein = langsame Konvergenz, 1.0 = kann oszillieren
    SOLVER_DAMPING = 0.5

    # =========================================================================
    # Auto-Constraint Heuristiken
    # =========================================================================

    # Winkel-Schwelle für PARALLEL-Vorschlag (Radians)
    AUTO_PARALLEL_ANGLE = math.radians(15.0)

    # Winkel-Schwelle um 90° für PERPENDICULAR-Vorschlag (Radians)
    AUTO_PERPENDICULAR_ANGLE = math.radians(15.0)

    # Mittelpunkt-Abstand für CONCENTRIC-Vorschlag (Zeichnungseinheiten)
    AUTO_CONCENTRIC_DISTANCE = 10.0

    # Radius-Differenz für EQUAL_RADIUS-Vorschlag (Zeichnungseinheiten)
    AUTO_EQUAL_RADIUS_DELTA = 2.0

    # =========================================================================
    # Mathematische Epsilon-Werte (Numerische Stabilität)
    # =========================================================================

    # Vermeidet Division durch Null
    EPSILON_MATH = 1e-9

    # Punkt-Vergleich (sind zwei Punkte "gleich"?)
    COMPARE_POINT = 1e-6


# =============================================================================
# Convenience-Funktionen
# =============================================================================

def solver_tolerance() -> float:
    """Gibt die Standard-Solver-Toleranz zurück."""
    return Tolerances.SOLVER_TOLERANCE


def solver_max_iterations() -> int:
    """Gibt die maximale Iterationszahl pro Constraint zurück."""
    return Tolerances.SOLVER_MAX_ITERATIONS


def auto_parallel_angle() -> float:
    """Gibt die Parallel-Schwelle für Auto-Constraints zurück (Radians)."""
    return Tolerances.AUTO_PARALLEL_ANGLE


# =============================================================================
# Toleranz-Validierung (für Debugging)
# =============================================================================

def validate_tolerances():
    """
    Validiert dass alle Toleranzen sinnvolle Werte haben.
    Nützlich für Tests und Debugging.
    """
    issues = []

    if not (1e-12 <= Tolerances.SOLVER_TOLERANCE <= 1e-2):
        issues.append(f"SOLVER_TOLERANCE außerhalb sinnvoller Grenzen: {Tolerances.SOLVER_TOLERANCE}")

    if Tolerances.SOLVER_MAX_ITERATIONS < 1:
        issues.append(f"SOLVER_MAX_ITERATIONS muss >= 1 sein: {Tolerances.SOLVER_MAX_ITERATIONS}")

    if not (0.0 < Tolerances.SOLVER_DAMPING <= 1.0):
        issues.append(f"SOLVER_DAMPING außerhalb (0, 1]: {Tolerances.SOLVER_DAMPING}")

    # Parallel- und Senkrecht-Fenster dürfen sich nicht überlappen
    if Tolerances.AUTO_PARALLEL_ANGLE + Tolerances.AUTO_PERPENDICULAR_ANGLE >= math.pi / 2:
        issues.append("AUTO_PARALLEL_ANGLE und AUTO_PERPENDICULAR_ANGLE überlappen sich")

    if Tolerances.EPSILON_MATH >= Tolerances.SOLVER_TOLERANCE:
        issues.append(
            f"EPSILON_MATH ({Tolerances.EPSILON_MATH}) nicht kleiner als SOLVER_TOLERANCE ({Tolerances.SOLVER_TOLERANCE})"
        )

    return issues


# Automatische Validierung beim Import (nur Warnung, kein Fehler)
_validation_issues = validate_tolerances()
if _validation_issues:
    from loguru import logger
    for issue in _validation_issues:
        logger.warning(f"Toleranz-Validierung: {issue}")
