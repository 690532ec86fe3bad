"""
Indicators Engine - acceptance checks, indicator-month resolution and
programme association.
"""

from indicator_workflow.engines.indicators.achievement import is_achieved, normalize_boolean
from indicator_workflow.engines.indicators.indicatable import (
    IndicatableMonth,
    IndicatableResolver,
    IndicatableVariant,
    variant_for,
    variant_of,
)
from indicator_workflow.engines.indicators.programme_service import ProgrammeIndicatorService

__all__ = [
    "is_achieved",
    "normalize_boolean",
    "IndicatableMonth",
    "IndicatableResolver",
    "IndicatableVariant",
    "variant_for",
    "variant_of",
    "ProgrammeIndicatorService",
]
