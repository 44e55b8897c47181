from .math_tools import MathTools
from .progress_metrics import ProgressMetrics

__all__ = ["MathTools", "ProgressMetrics"]
