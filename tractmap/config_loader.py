"""
Configuration Loader for the Tract Choropleth Viewer

This module provides a centralized way to load and access configuration
settings from the config.yaml file.

Usage:
    from tractmap.config_loader import Config

    config = Config()
    attributes_csv = config.get_input_path('attributes_csv')
    html_dir = config.get_output_dir('html')
"""

import os
import pathlib
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml  # type: ignore[import-untyped]
from loguru import logger

PACKAGE_CONFIG = Path(__file__).parent / "config.yaml"


class Config:
    """Configuration manager for the tract choropleth viewer."""

    # Default values that can be overridden in config
    DEFAULTS: Dict[str, Any] = {
        "columns": {
            "key": "TRACTCE",
        },
        "visualization": {
            "palette": ["#eff3ff", "#bdd7e7", "#6baed6", "#3182bd", "#08519c"],
            "fallback_color": "#fff",
            "class_count": 5,
            "map_title": "Census tracts of Chittenden County, VT",
            "map_center": [44.442, -73.10],
            "map_zoom": 10,
            "map_tiles": "CartoDB Positron",
            "map_fill_opacity": 0.85,
            "chart_width": 735,
            "chart_height": 700,
            "chart_left_padding": 25,
            "chart_right_padding": 2,
            "chart_top_bottom_padding": 50,
            "chart_bar_gutter": 1,
            "chart_domain": [0, 100],
            "chart_dpi": 96,
        },
        "styles": {
            "tract": {"stroke": "#ccc", "stroke_width": 0.5},
            "bar": {"stroke": "none", "stroke_width": 0},
            "highlight": {"stroke": "#ef5641", "stroke_width": 3},
        },
        "interaction": {
            "tooltip_offset_x": 10,
            "tooltip_offset_above": 75,
            "tooltip_offset_below": 25,
            "tooltip_right_margin": 20,
            "tooltip_top_margin": 75,
            "transition_duration_ms": 500,
            "transition_stagger_ms": 20,
        },
    }

    def __init__(
        self,
        config_file: Optional[Union[str, Path]] = None,
        project_root_override: Optional[Union[str, Path]] = None,
    ):
        """
        Initialize configuration manager.

        Args:
            config_file: Path to config file. If None, looks for:
                        1. Environment variable TRACTMAP_CONFIG_PATH
                        2. config.yaml in current directory
                        3. the config.yaml shipped inside the package
            project_root_override: Override project root detection (useful for temp configs)
        """
        if config_file is None:
            # Check environment variable first (for CLI overrides)
            env_config = os.environ.get("TRACTMAP_CONFIG_PATH")
            if env_config and Path(env_config).exists():
                config_file = env_config
                logger.debug(f"Using config from environment: {config_file}")
            elif Path("config.yaml").exists():
                config_file = "config.yaml"
            elif PACKAGE_CONFIG.exists():
                config_file = PACKAGE_CONFIG
                logger.debug("Using packaged tractmap/config.yaml")
            else:
                raise FileNotFoundError(
                    "No config.yaml found. Check current directory or set TRACTMAP_CONFIG_PATH"
                )

        self.config_path = Path(config_file).resolve()
        if not self.config_path.exists():
            raise FileNotFoundError(f"Config file not found: {self.config_path}")

        if project_root_override:
            self.project_root = Path(project_root_override).resolve()
            logger.debug(f"Using project root override: {self.project_root}")
        elif os.environ.get("TRACTMAP_PROJECT_ROOT"):
            self.project_root = Path(os.environ["TRACTMAP_PROJECT_ROOT"]).resolve()
            logger.debug(f"Using project root from environment: {self.project_root}")
        else:
            self.project_root = self._find_project_root()

        logger.debug(f"Loading config from: {self.config_path}")
        logger.debug(f"Project root: {self.project_root}")

        with open(self.config_path, "r") as f:
            self.data = yaml.safe_load(f) or {}

        self._setup_paths()

    def _setup_paths(self) -> None:
        """Setup base directory paths relative to project root."""
        dirs = self.data.get("directories", {})

        self.data_dir = self.project_root / dirs.get("data", "assets/data")
        self.html_dir = self.project_root / dirs.get("html", "html")

    def get_input_path(self, filename_key: str) -> pathlib.Path:
        """
        Get full path to an input file. The path is taken directly from config.yaml
        and joined with the project root.

        Args:
            filename_key: Key for the filename in input_files

        Returns:
            Full absolute path to the input file
        """
        relative_path_str = self.data.get("input_files", {}).get(filename_key)
        if not relative_path_str:
            raise ValueError(
                f"Input filename key '{filename_key}' not found in config: input_files"
            )

        return self.project_root / relative_path_str

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation with intelligent defaults.

        Args:
            key_path: Dot-separated path to the configuration value
            default: Default value if key not found

        Returns:
            Configuration value
        """
        keys = key_path.split(".")

        # Try to get from config first
        value: Any = self.data
        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                value = None
                break

        # If not found in config, try defaults
        if value is None:
            value = self.DEFAULTS
            for key in keys:
                if isinstance(value, dict) and key in value:
                    value = value[key]
                else:
                    return default

        return value

    def get_output_dir(self, dir_key: str) -> pathlib.Path:
        """
        Get full path to an output directory, creating it if needed.

        Args:
            dir_key: Directory key ('html' or 'data')

        Returns:
            Full path to the directory
        """
        if dir_key == "html":
            directory = pathlib.Path(self.html_dir)
        elif dir_key == "data":
            directory = pathlib.Path(self.data_dir)
        else:
            raise ValueError(f"Unknown directory key: {dir_key}")

        directory.mkdir(parents=True, exist_ok=True)
        return directory

    def get_column_name(self, column_key: str) -> str:
        """Get column name with intelligent defaults."""
        result = self.get(f"columns.{column_key}")
        if isinstance(result, str):
            return result
        raise ValueError(f"Column name not found or not a string: {column_key}")

    def get_visualization_setting(self, setting_key: str) -> Any:
        """Get visualization setting with intelligent defaults."""
        return self.get(f"visualization.{setting_key}")

    def get_interaction_setting(self, setting_key: str) -> Any:
        """Get interaction setting with intelligent defaults."""
        return self.get(f"interaction.{setting_key}")

    def get_style(self, kind: str) -> Dict[str, Any]:
        """Get the default stroke style for a visual element kind."""
        style = self.get(f"styles.{kind}")
        if not isinstance(style, dict):
            raise ValueError(f"Style not found: {kind}")
        return dict(style)

    def validate_input_files(self) -> Dict[str, bool]:
        """Validate that input files exist."""
        results: Dict[str, bool] = {}
        input_files = self.data.get("input_files", {})

        for filename_key, value in input_files.items():
            # Object names live next to the file paths but are not files
            if filename_key.endswith("_object"):
                continue
            try:
                results[filename_key] = self.get_input_path(filename_key).exists()
            except ValueError:
                results[filename_key] = False

        return results

    def print_config_summary(self) -> None:
        """Print a summary of the current configuration."""
        logger.debug("📋 Configuration Summary")
        logger.debug("=" * 50)
        logger.debug(f"Project: {self.get('project_name', 'Unknown')}")
        logger.debug(f"Description: {self.get('description', 'No description')}")
        logger.debug(f"Config file: {self.config_path}")
        logger.debug(f"Project root: {self.project_root}")

        logger.debug("📊 Input Files:")
        for file_key, exists in self.validate_input_files().items():
            status = "✅" if exists else "❌"
            logger.debug(f"  {status} {file_key}")

    def _find_project_root(self) -> Path:
        """Find the project root directory by looking for characteristic files/directories."""
        # The packaged config belongs to whoever runs the viewer
        if self.config_path == PACKAGE_CONFIG.resolve():
            return Path.cwd()

        current = self.config_path.parent
        project_markers = ["assets", "tractmap", "pyproject.toml", ".git"]

        for _ in range(5):  # Limit to 5 levels up
            markers_found = sum(1 for marker in project_markers if (current / marker).exists())
            if markers_found >= 2:
                return current

            parent = current.parent
            if parent == current:
                break
            current = parent

        logger.debug(f"Using config directory as project root: {self.config_path.parent}")
        return self.config_path.parent
