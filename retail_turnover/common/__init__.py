"""
Common utilities for the retail turnover forecasting pipeline.
"""

from .config import load_settings, DEFAULT_SETTINGS, STATE_REGIONS
from .data_loader import DataLoader
from .preprocessing import Preprocessor, parse_label
from .visualization import Visualizer
from .reporting import Reporter

__all__ = [
    "load_settings",
    "DEFAULT_SETTINGS",
    "STATE_REGIONS",
    "DataLoader",
    "Preprocessor",
    "parse_label",
    "Visualizer",
    "Reporter",
]
