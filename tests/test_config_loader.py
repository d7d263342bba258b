"""Tests for the YAML configuration loader."""

import pytest
import yaml

from tractmap.config_loader import Config


class TestConfig:
    def test_defaults_fill_missing_settings(self, config):
        assert config.get_column_name("key") == "TRACTCE"
        assert config.get_visualization_setting("palette")[0] == "#eff3ff"
        assert config.get_interaction_setting("tooltip_offset_x") == 10

    def test_file_values_override_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({"visualization": {"fallback_color": "#eee"}}))

        config = Config(path, project_root_override=tmp_path)

        assert config.get_visualization_setting("fallback_color") == "#eee"
        assert config.get_visualization_setting("chart_height") == 700

    def test_missing_key_returns_default(self, config):
        assert config.get("visualization.nope", "x") == "x"

    def test_styles(self, config):
        assert config.get_style("highlight") == {"stroke": "#ef5641", "stroke_width": 3}

    def test_unknown_style_raises(self, config):
        with pytest.raises(ValueError):
            config.get_style("legend")

    def test_input_path_is_relative_to_project_root(self, project_config, project_dir):
        assert project_config.get_input_path("attributes_csv") == project_dir / "assets/data/tracts.csv"

    def test_unknown_input_key_raises(self, config):
        with pytest.raises(ValueError):
            config.get_input_path("votes_csv")

    def test_validate_input_files_skips_object_names(self, project_config):
        assert project_config.validate_input_files() == {
            "attributes_csv": True,
            "tracts_topojson": True,
        }

    def test_output_dir_is_created(self, config, tmp_path):
        html_dir = config.get_output_dir("html")

        assert html_dir == tmp_path / "html"
        assert html_dir.is_dir()

    def test_missing_config_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            Config(tmp_path / "absent.yaml")

    def test_environment_variable(self, tmp_path, monkeypatch):
        path = tmp_path / "env.yaml"
        path.write_text(yaml.safe_dump({"project_name": "From env"}))
        monkeypatch.setenv("TRACTMAP_CONFIG_PATH", str(path))

        assert Config(project_root_override=tmp_path).get("project_name") == "From env"
