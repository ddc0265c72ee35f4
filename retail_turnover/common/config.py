"""
Configuration Module
====================

Default settings for the turnover analysis, optionally overridden by a
YAML file.

Usage:
    from retail_turnover.common import load_settings

    settings = load_settings("config/settings.yaml")
    test_size = settings['analysis']['test_size']
"""

import copy
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from loguru import logger


STATE_REGIONS = [
    "New South Wales",
    "Victoria",
    "Queensland",
    "South Australia",
    "Western Australia",
    "Tasmania",
    "Northern Territory",
    "Australian Capital Territory",
]

DEFAULT_SETTINGS: Dict[str, Any] = {
    'data': {
        'catalogue': "8501.0",
        'table': 11,
        'url_template': (
            "https://www.abs.gov.au/statistics/industry/retail-and-wholesale-trade/"
            "retail-trade-australia/latest-release/{code}.xlsx"
        ),
        'cache_dir': ".cache/abs",
        'sheet_name': "Data1",
        'timeout': 60,
        'category': "Turnover",
        'regions': STATE_REGIONS,
        'label_delimiter': ";",
        'min_data_points': 49,
    },
    'analysis': {
        'series_id': None,
        'random_state': 12345678,
        'test_size': 24,
        'seasonal_period': 12,
        'lambda_method': "guerrero",
        'seasonal_diffs': 1,
        'diffs': 1,
        'ljung_box_lag': 24,
        'confidence_level': 0.95,
        'significance': 0.05,
    },
    'ets': {
        'auto': True,
        'candidates': [
            {'error': "mul", 'trend': "add", 'damped_trend': False, 'seasonal': "mul"},
            {'error': "mul", 'trend': "add", 'damped_trend': True, 'seasonal': "mul"},
            {'error': "add", 'trend': "add", 'damped_trend': False, 'seasonal': "add"},
            {'error': "mul", 'trend': None, 'damped_trend': False, 'seasonal': "mul"},
        ],
    },
    'arima': {
        'auto': True,
        'max_p': 3,
        'max_q': 3,
        'max_P': 1,
        'max_Q': 1,
        'candidates': [
            {'order': [0, 1, 1], 'seasonal_order': [0, 1, 1]},
            {'order': [2, 1, 0], 'seasonal_order': [0, 1, 1]},
            {'order': [1, 1, 1], 'seasonal_order': [1, 1, 1]},
        ],
    },
    'output': {
        'dir': "outputs",
        'show_plots': False,
    },
}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_settings(config_path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """
    Load settings, merging a YAML file over the built-in defaults.

    Args:
        config_path: Path to YAML configuration file. Missing files are
            ignored and the defaults are returned.

    Returns:
        Nested settings dictionary
    """
    if config_path and Path(config_path).exists():
        with open(config_path, 'r') as f:
            overrides = yaml.safe_load(f) or {}
        logger.info(f"Loaded configuration from {config_path}")
        return _deep_merge(DEFAULT_SETTINGS, overrides)

    if config_path:
        logger.debug(f"Config file {config_path} not found, using defaults")
    return copy.deepcopy(DEFAULT_SETTINGS)
