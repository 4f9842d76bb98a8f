"""Engine subpackage - core price resolution logic and result types."""
from .models import PriceCalculationResult, LevelPrice, TraceStep

__all__ = ['PriceCalculationResult', 'LevelPrice', 'TraceStep']
