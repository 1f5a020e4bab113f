"""
Tests for settings resolution and environment validation.
"""
import pytest

from app.core.env_validation import get_env_summary, validate_required_env_vars
from app.core.exceptions import ConfigurationError
from app.core.intensity import IntensityLevel
from app.core.settings import _ENV_FIELDS, Settings, load_config_file


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """No settings env vars and a config file path that does not exist"""
    for name in _ENV_FIELDS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("ORCHESTRATOR_CONFIG_FILE", str(tmp_path / "missing.yaml"))
    return monkeypatch


class TestFromMapping:
    """Tests for Settings.from_mapping"""

    def test_defaults(self):
        settings = Settings.from_mapping({})
        assert settings.detection_threshold == 180
        assert settings.max_attempts == 3
        assert settings.default_intensity is IntensityLevel.MEDIUM
        assert settings.regeneration_cooldown_seconds == 120

    def test_string_values_are_converted(self):
        settings = Settings.from_mapping({
            "detection_threshold": "170.5",
            "max_attempts": "2",
            "default_intensity": "Heavy",
            "regeneration_cooldown_seconds": "0",
        })
        assert settings.detection_threshold == 170.5
        assert settings.max_attempts == 2
        assert settings.default_intensity is IntensityLevel.HEAVY
        assert settings.regeneration_cooldown_seconds == 0

    @pytest.mark.parametrize("value,expected", [(100, 140.0), (500, 220.0)])
    def test_threshold_is_clamped(self, value, expected, caplog):
        settings = Settings.from_mapping({"detection_threshold": value})
        assert settings.detection_threshold == expected
        assert "outside 140-220" in caplog.text

    @pytest.mark.parametrize("values", [
        {"max_attempts": "many"},
        {"max_attempts": 0},
        {"regeneration_cooldown_seconds": -1},
        {"scorer_timeout_seconds": 0},
        {"default_intensity": "extreme"},
    ])
    def test_invalid_values_raise_configuration_error(self, values):
        with pytest.raises(ConfigurationError):
            Settings.from_mapping(values)

    def test_unknown_keys_are_ignored(self):
        assert Settings.from_mapping({"color": "blue"}) == Settings()

    def test_public_dict_hides_api_key(self):
        data = Settings(openai_api_key="sk-secret").public_dict()
        assert data["openai_api_key"] == "sk-***"
        assert data["default_intensity"] == "medium"


class TestLoad:
    """Defaults, YAML file, then environment"""

    def test_missing_file_gives_defaults(self, clean_env):
        assert Settings.load() == Settings()

    def test_yaml_file_is_applied(self, clean_env, tmp_path):
        config_file = tmp_path / "orchestrator.yaml"
        config_file.write_text("detection_threshold: 160\nmax_attempts: 2\ndefault_intensity: light\n")
        clean_env.setenv("ORCHESTRATOR_CONFIG_FILE", str(config_file))

        settings = Settings.load()

        assert settings.detection_threshold == 160
        assert settings.max_attempts == 2
        assert settings.default_intensity is IntensityLevel.LIGHT

    def test_environment_overrides_yaml(self, clean_env, tmp_path):
        config_file = tmp_path / "orchestrator.yaml"
        config_file.write_text("detection_threshold: 160\n")
        clean_env.setenv("ORCHESTRATOR_CONFIG_FILE", str(config_file))
        clean_env.setenv("DETECTION_THRESHOLD", "200")
        clean_env.setenv("REGENERATION_COOLDOWN_SECONDS", "30")

        settings = Settings.load()

        assert settings.detection_threshold == 200
        assert settings.regeneration_cooldown_seconds == 30

    def test_yaml_must_be_a_mapping(self, tmp_path):
        config_file = tmp_path / "orchestrator.yaml"
        config_file.write_text("- just\n- a list\n")
        with pytest.raises(ConfigurationError):
            load_config_file(config_file)

    def test_invalid_yaml_raises(self, tmp_path):
        config_file = tmp_path / "orchestrator.yaml"
        config_file.write_text("detection_threshold: [unclosed\n")
        with pytest.raises(ConfigurationError):
            load_config_file(config_file)


class TestEnvValidation:
    """Tests for validate_required_env_vars"""

    def test_valid_environment(self, clean_env):
        clean_env.delenv("DEBUG", raising=False)
        clean_env.setenv("MAX_REGENERATION_ATTEMPTS", "4")
        clean_env.setenv("DEFAULT_HUMANIZATION_INTENSITY", "light")
        validated = validate_required_env_vars()
        assert validated["MAX_REGENERATION_ATTEMPTS"] == "4"
        assert validated["DEBUG"] == "false"

    @pytest.mark.parametrize("name,value", [
        ("MAX_REGENERATION_ATTEMPTS", "0"),
        ("DETECTION_THRESHOLD", "high"),
        ("DEFAULT_HUMANIZATION_INTENSITY", "extreme"),
        ("REGENERATION_COOLDOWN_SECONDS", "-5"),
        ("SCORER_TIMEOUT_SECONDS", "0"),
    ])
    def test_invalid_values_are_reported(self, clean_env, name, value):
        clean_env.setenv(name, value)
        with pytest.raises(ConfigurationError) as exc_info:
            validate_required_env_vars()
        assert any(name in error for error in exc_info.value.details["errors"])

    def test_summary_hides_api_key(self, clean_env):
        clean_env.setenv("OPENAI_API_KEY", "sk-secret")
        summary = get_env_summary()
        assert summary["OPENAI_API_KEY"] == "set"
        assert "sk-secret" not in str(summary)
