"""
Four Pillars (BaZi) calendar engine.

Solar-term boundaries are root-found from an approximate solar ephemeris;
pillars, derived attributes and luck cycles are assigned under a
configurable BoundaryPolicy.
"""

from bazi_engine.chart import BirthInput, Chart, compute_chart
from bazi_engine.errors import (
    BaziEngineError,
    ConfigurationError,
    InputValidationError,
    RootFindingDegraded,
)
from bazi_engine.location import Location
from bazi_engine.luck import Sex
from bazi_engine.policy import (
    BoundaryPolicy,
    CorrectionMode,
    Precision,
    TieBreak,
    TimeReference,
)
from bazi_engine.solar_terms import SolarTermCache, build_solar_terms

__all__ = [
    "BirthInput",
    "Chart",
    "compute_chart",
    "BaziEngineError",
    "ConfigurationError",
    "InputValidationError",
    "RootFindingDegraded",
    "Location",
    "Sex",
    "BoundaryPolicy",
    "CorrectionMode",
    "Precision",
    "TieBreak",
    "TimeReference",
    "SolarTermCache",
    "build_solar_terms",
]
