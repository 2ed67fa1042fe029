import yaml
import logging
import os
import copy
from pathlib import Path
from typing import Dict, Any, Optional
import json
import plotly.io as pio
import matplotlib.pyplot as plt
import seaborn as sns
from datetime import datetime

DEFAULT_THEME = {
    'bg': '#0d0d10',
    'ink': '#f6f6f9',
    'muted': '#aab',
    'line': '#1a1a25',
    'panel': '#121218',
    'accent': '#8e24aa',
    'anticipatory': '#e040fb',
    'non_anticipatory': '#4fc3f7',
    'unknown': '#9e9eb0',
    'grid': 'rgba(255,255,255,0.12)',
}

DEFAULT_CHARTS = {
    'genres': {'width': 928, 'height': 600, 'top_n': 15, 'bar_color': 'purple',
               'margin': {'top': 30, 'right': 20, 'bottom': 120, 'left': 30}},
    'timeline': {'width': 820, 'height': 260, 'jitter_radius': 5,
                 'reference_score': 1.0, 'max_claims': 5,
                 'margin': {'top': 12, 'right': 28, 'bottom': 40, 'left': 50}},
    'results': {'width': 940, 'height': 520, 'jitter_radius': 7,
                'margin': {'top': 28, 'right': 18, 'bottom': 58, 'left': 70}},
    'variables': {'width': 460, 'height': 260, 'bins': 22,
                  'margin': {'top': 52, 'right': 18, 'bottom': 58, 'left': 70}},
    'regression': {'width': 1100, 'row_height': 100,
                   'margin': {'top': 34, 'right': 40, 'bottom': 64, 'left': 240}},
}

DEFAULT_SOURCE_NOTE = "Source : IMDb dataset, 2020"


def merge_settings(defaults: Dict[str, Any], overrides: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    merged = copy.deepcopy(defaults)
    for key, value in (overrides or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_settings(merged[key], value)
        else:
            merged[key] = value
    return merged


class AnalysisConfig:
    """Configuration manager for dashboard settings and paths"""
    def __init__(self, config_path: str = "config/config.yaml"):
        """
        Initialize configuration manager

        Args:
            config_path: Path to YAML config file

        Raises:
            FileNotFoundError: If config file not found
            yaml.YAMLError: If config file has invalid YAML
        """
        self.config_path = config_path
        self.config = self._load_config()
        self._validate_config()
        self._setup_paths()

        # Setup logging
        log_settings = self.logging_settings
        self.logger = setup_logging(__name__, level=log_settings['level'],
                                    log_file=log_settings['file'])
        self._setup_visualization()

    def _load_config(self) -> Dict[str, Any]:
        """Load and parse configuration from YAML file"""
        try:
            if not os.path.exists(self.config_path):
                raise FileNotFoundError(f"Config file not found at {self.config_path}")

            with open(self.config_path, 'r') as f:
                config = yaml.safe_load(f)

            if not config:
                raise ValueError("Config file is empty")

            return config

        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Error parsing config file: {str(e)}")

    def _validate_config(self) -> None:
        """Validate required config sections and fields exist"""
        required_sections = ['paths', 'visualization']
        required_paths = ['data', 'results']

        for section in required_sections:
            if section not in self.config:
                raise KeyError(f"Missing required config section: {section}")

        for category in required_paths:
            if category not in self.config['paths']:
                raise KeyError(f"Missing required paths category: {category}")

    def _setup_paths(self) -> None:
        """Create necessary directories if they don't exist"""
        try:
            for category in ['data', 'results']:
                for path in self.config['paths'][category].values():
                    path_obj = Path(path)
                    path_obj.mkdir(parents=True, exist_ok=True)

                    if not os.access(path_obj, os.W_OK):
                        raise PermissionError(f"No write access to directory: {path_obj}")

        except Exception as e:
            raise RuntimeError(f"Error setting up directories: {str(e)}")

    def _setup_visualization(self) -> None:
        """Configure visualization settings with error handling"""
        try:
            style = self.config['visualization'].get('style', 'default')
            palette = self.config['visualization'].get('color_palette', 'deep')
            template = self.config['visualization'].get('plotly_template', 'plotly_dark')

            plt.style.use(style)
            sns.set_palette(palette)
            pio.templates.default = template

        except Exception as e:
            self.logger.error(f"Error setting up visualizations: {str(e)}")
            # Fall back to defaults
            plt.style.use('default')
            sns.set_palette('deep')
            pio.templates.default = 'plotly_dark'

    def path(self, category: str, name: str) -> Path:
        """Configured directory, e.g. path('results', 'plots')"""
        try:
            return Path(self.config['paths'][category][name])
        except KeyError:
            raise KeyError(f"No path configured for {category}.{name}")

    def dataset(self, name: str) -> Path:
        """Path of a named dataset from the ``datasets`` section"""
        datasets = self.config.get('datasets') or {}
        if name not in datasets:
            raise KeyError(f"No dataset configured under '{name}'")
        return Path(datasets[name])

    def chart(self, name: str) -> Dict[str, Any]:
        """Per-chart settings merged over the built-in defaults"""
        charts = self.config.get('charts') or {}
        return merge_settings(DEFAULT_CHARTS.get(name, {}), charts.get(name))

    @property
    def charts(self) -> Dict[str, Dict[str, Any]]:
        names = set(DEFAULT_CHARTS) | set(self.config.get('charts') or {})
        return {name: self.chart(name) for name in names}

    @property
    def theme(self) -> Dict[str, str]:
        return merge_settings(DEFAULT_THEME, self.config.get('theme'))

    @property
    def source_note(self) -> str:
        return self.config['visualization'].get('source_note', DEFAULT_SOURCE_NOTE)

    @property
    def dashboard_settings(self) -> Dict[str, Any]:
        return merge_settings({'host': '127.0.0.1', 'port': 8050, 'debug': False},
                              self.config.get('dashboard'))

    @property
    def logging_settings(self) -> Dict[str, Any]:
        settings = merge_settings({'level': 'INFO', 'file': None}, self.config.get('logging'))
        level = settings['level']
        if isinstance(level, str):
            settings['level'] = logging.getLevelName(level.upper())
        if not isinstance(settings['level'], int):
            settings['level'] = logging.INFO
        return settings


class ResultsManager:
    """Manager for saving and loading render manifests"""
    def __init__(self, config: AnalysisConfig):
        """
        Initialize results manager

        Args:
            config: AnalysisConfig instance
        """
        self.config = config
        self.results_path = Path(config.config['paths']['results']['reports'])
        self.logger = logging.getLogger(__name__)

    def save_results(self, results: Dict[str, Any], name: str,
                     timestamp: bool = True) -> Path:
        """
        Save a render manifest to JSON

        Args:
            results: Manifest to save (chart name -> rows, written files)
            name: Base filename for the manifest
            timestamp: Whether to append timestamp to filename

        Returns:
            Path of the written file

        Raises:
            IOError: If unable to write results file
        """
        try:
            if timestamp:
                timestamp_str = datetime.now().strftime("%Y%m%d_%H%M%S")
                filename = f"{name}_{timestamp_str}.json"
            else:
                filename = f"{name}.json"

            file_path = self.results_path / filename

            with open(file_path, 'w') as f:
                json.dump(results, f, indent=4, default=str)

            self.logger.info(f"Results saved to {file_path}")
            return file_path

        except Exception as e:
            self.logger.error(f"Error saving results: {str(e)}")
            raise IOError(f"Failed to save results: {str(e)}")

    def load_results(self, name: str) -> Dict[str, Any]:
        """
        Load a render manifest from JSON

        Args:
            name: Manifest filename (without .json extension)

        Returns:
            Dictionary of loaded results

        Raises:
            FileNotFoundError: If results file not found
            json.JSONDecodeError: If invalid JSON
        """
        try:
            file_path = self.results_path / f"{name}.json"

            if not file_path.exists():
                raise FileNotFoundError(f"Results file not found: {file_path}")

            with open(file_path, 'r') as f:
                results = json.load(f)

            self.logger.info(f"Results loaded from {file_path}")
            return results

        except json.JSONDecodeError as e:
            self.logger.error(f"Error parsing results JSON: {str(e)}")
            raise

        except Exception as e:
            self.logger.error(f"Error loading results: {str(e)}")
            raise


def setup_logging(name: Optional[str], level: int = logging.INFO,
                  log_file: Optional[str] = None) -> logging.Logger:
    """
    Setup logging configuration with console and file handlers

    Args:
        name: Logger name ("" or None for the root logger)
        level: Logging level
        log_file: Path to log file (None for no file logging)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name or None)
    logger.setLevel(level)
    # a named logger gets its own handlers and must not repeat through root
    if name:
        logger.propagate = False

    # Avoid duplicate handlers
    if logger.handlers:
        logger.handlers.clear()

    # Create console handler
    c_handler = logging.StreamHandler()
    c_handler.setLevel(level)

    # Create formatters
    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    c_handler.setFormatter(formatter)
    logger.addHandler(c_handler)

    # Add file handler if specified
    if log_file:
        try:
            log_dir = os.path.dirname(log_file)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)

            f_handler = logging.FileHandler(log_file)
            f_handler.setLevel(level)
            f_handler.setFormatter(formatter)
            logger.addHandler(f_handler)

        except Exception as e:
            logger.error(f"Failed to setup file logging: {str(e)}")

    return logger
