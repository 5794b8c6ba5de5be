"""
TechDraw - Zentrale Versionsverwaltung
======================================

Alle Versionsinformationen werden hier zentral gepflegt.
Import: from config.version import VERSION, VERSION_STRING, APP_NAME
"""

# Haupt-Versionsnummer (Semantic Versioning: MAJOR.MINOR.PATCH)
VERSION_MAJOR = 0
VERSION_MINOR = 1
VERSION_PATCH = 0

# Release-Typ: "alpha", "beta", "rc1", "" (leer für stable release)
VERSION_SUFFIX = "alpha"

APP_NAME = "TechDraw Constraints"

# Abgeleitete Strings
VERSION = f"{VERSION_MAJOR}.{VERSION_MINOR}.{VERSION_PATCH}"
VERSION_STRING = f"{VERSION}-{VERSION_SUFFIX}" if VERSION_SUFFIX else VERSION


def get_version_info() -> dict:
    """
    Gibt alle Versionsinformationen als Dictionary zurück.
    Landet in ConstraintManager.to_dict(), damit gespeicherte Constraint-Sets
    ihre Herkunft kennen.
    """
    return {
        "app_name": APP_NAME,
        "version": VERSION,
        "version_string": VERSION_STRING,
    }
