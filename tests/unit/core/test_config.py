"""Unit tests for configuration system.

Tests for Pydantic configuration models including validation logic, field
validators, environment variable resolution and configuration discovery.
"""

from datetime import timedelta
from pathlib import Path

import pytest
from pydantic import ValidationError

from diskscope.core.config import (
    ENV_VAR_PATTERN,
    ApplicationConfig,
    CacheConfig,
    ConfigurationError,
    DisplayConfig,
    EnvironmentVariableError,
    MainConfig,
    ScanConfig,
    discover_config_file,
    load_config,
    load_main_config,
    resolve_env_var,
    resolve_env_vars,
)


@pytest.mark.unit
class TestScanConfig:
    """Test ScanConfig validation and defaults."""

    def test_default_values(self) -> None:
        """Defaults allow eight concurrent listings and no exclusions."""
        config = ScanConfig()

        assert config.concurrency == 8
        assert config.exclusions == []

    @pytest.mark.parametrize("value", [0, -1, 257])
    def test_concurrency_bounds(self, value: int) -> None:
        """Concurrency must be between 1 and 256."""
        with pytest.raises(ValidationError) as exc_info:
            _ = ScanConfig(concurrency=value)

        assert "concurrency" in str(exc_info.value)

    def test_blank_exclusions_dropped(self) -> None:
        """Blank patterns are removed and the rest stripped."""
        config = ScanConfig(exclusions=["node_modules", "  ", " .git "])

        assert config.exclusions == ["node_modules", ".git"]

    def test_unknown_field_rejected(self) -> None:
        """Typos in field names are reported instead of ignored."""
        with pytest.raises(ValidationError):
            _ = ScanConfig.model_validate({"concurency": 4})


@pytest.mark.unit
class TestCacheConfig:
    """Test CacheConfig validation and defaults."""

    def test_default_values(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """The default directory follows XDG_CACHE_HOME and the TTL is six hours."""
        monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path))

        config = CacheConfig()

        assert config.enabled
        assert config.directory == tmp_path / "diskscope"
        assert config.ttl == timedelta(hours=6)

    def test_home_expanded(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """``~`` in the directory is expanded."""
        monkeypatch.setenv("HOME", str(tmp_path))

        config = CacheConfig(directory=Path("~/cache"))

        assert config.directory == tmp_path / "cache"

    def test_null_ttl_never_expires(self) -> None:
        """A null TTL disables expiry."""
        assert CacheConfig(ttl_seconds=None).ttl is None

    def test_negative_ttl_rejected(self) -> None:
        """The TTL cannot be negative."""
        with pytest.raises(ValidationError):
            _ = CacheConfig(ttl_seconds=-1)


@pytest.mark.unit
class TestDisplayConfig:
    """Test DisplayConfig validation and defaults."""

    def test_default_values(self) -> None:
        """Defaults show everything three levels deep in list mode."""
        config = DisplayConfig()

        assert config.min_size == 0
        assert config.depth == 3
        assert config.layout_mode == "list"

    @pytest.mark.parametrize(
        ("value", "expected"),
        [("100MB", 100 * 1024**2), ("1.5K", 1536), ("0", 0), (4096, 4096)],
    )
    def test_min_size_parsing(self, value: str | int, expected: int) -> None:
        """Human-readable sizes are converted to bytes."""
        assert DisplayConfig.model_validate({"min_size": value}).min_size == expected

    def test_invalid_min_size(self) -> None:
        """Unparseable sizes are validation errors."""
        with pytest.raises(ValidationError):
            _ = DisplayConfig.model_validate({"min_size": "lots"})

    def test_invalid_layout_mode(self) -> None:
        """Only list and treemap layouts exist."""
        with pytest.raises(ValidationError):
            _ = DisplayConfig.model_validate({"layout_mode": "pie"})


@pytest.mark.unit
class TestApplicationConfig:
    """Test ApplicationConfig validation and defaults."""

    def test_default_values(self) -> None:
        """Defaults log warnings to the console only."""
        config = ApplicationConfig()

        assert config.log_level == "WARNING"
        assert config.log_file is None

    def test_log_level_validation(self) -> None:
        """Unknown log levels are rejected."""
        with pytest.raises(ValidationError):
            _ = ApplicationConfig(log_level="VERBOSE")

    def test_assignment_validated(self) -> None:
        """Overrides applied after loading are validated too."""
        config = ApplicationConfig()

        with pytest.raises(ValidationError):
            config.log_level = "LOUD"


@pytest.mark.unit
class TestEnvironmentVariables:
    """Test ``${VARIABLE}`` resolution."""

    def test_pattern_finds_variables(self) -> None:
        """The pattern extracts variable names."""
        assert ENV_VAR_PATTERN.findall("${A}/x/${B_2}") == ["A", "B_2"]

    def test_resolve_variable_in_string(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """References are replaced inside larger strings."""
        monkeypatch.setenv("CACHE_ROOT", "/var/cache")

        assert resolve_env_var("${CACHE_ROOT}/diskscope") == "/var/cache/diskscope"

    def test_no_variables_returns_original(self) -> None:
        """Strings without references are unchanged."""
        assert resolve_env_var("/plain/path") == "/plain/path"

    def test_missing_variable_raises_error(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Unset variables raise EnvironmentVariableError naming the variable."""
        monkeypatch.delenv("DISKSCOPE_UNSET", raising=False)

        with pytest.raises(EnvironmentVariableError, match="DISKSCOPE_UNSET"):
            _ = resolve_env_var("${DISKSCOPE_UNSET}")

    def test_resolve_nested_structures(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Mappings and lists are traversed, other values kept."""
        monkeypatch.setenv("SKIP", "node_modules")

        data = {"scan": {"exclusions": ["${SKIP}", ".git"], "concurrency": 4}}

        assert resolve_env_vars(data) == {"scan": {"exclusions": ["node_modules", ".git"], "concurrency": 4}}


@pytest.mark.unit
class TestLoadMainConfig:
    """Test loading configuration files."""

    def test_load_full_config(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Every section is read and validated."""
        monkeypatch.setenv("DISKSCOPE_TEST_CACHE", str(tmp_path / "c"))
        config_file = tmp_path / "diskscope.yaml"
        _ = config_file.write_text(
            """
scan:
  concurrency: 16
  exclusions: ["node_modules", "/proc"]
cache:
  enabled: false
  directory: ${DISKSCOPE_TEST_CACHE}
  ttl_seconds: 60
display:
  min_size: 10MB
  depth: 2
  layout_mode: treemap
application:
  log_level: DEBUG
""",
            encoding="utf-8",
        )

        config = load_main_config(config_file)

        assert config.scan.concurrency == 16
        assert config.scan.exclusions == ["node_modules", "/proc"]
        assert not config.cache.enabled
        assert config.cache.directory == tmp_path / "c"
        assert config.cache.ttl == timedelta(seconds=60)
        assert config.display.min_size == 10 * 1024**2
        assert config.display.depth == 2
        assert config.display.layout_mode == "treemap"
        assert config.application.log_level == "DEBUG"

    def test_empty_file_gives_defaults(self, tmp_path: Path) -> None:
        """An empty file is a valid configuration."""
        config_file = tmp_path / "empty.yaml"
        _ = config_file.write_text("", encoding="utf-8")

        config = load_main_config(config_file)

        assert config.scan.concurrency == 8
        assert config.display.depth == 3

    def test_missing_file(self, tmp_path: Path) -> None:
        """A missing file is a configuration error."""
        with pytest.raises(ConfigurationError, match="not found"):
            _ = load_main_config(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        """YAML syntax errors are configuration errors."""
        config_file = tmp_path / "bad.yaml"
        _ = config_file.write_text("scan: [unclosed", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="Failed to parse YAML"):
            _ = load_main_config(config_file)

    def test_non_mapping_root(self, tmp_path: Path) -> None:
        """The document root must be a mapping."""
        config_file = tmp_path / "list.yaml"
        _ = config_file.write_text("- a\n- b\n", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="Expected YAML dictionary"):
            _ = load_main_config(config_file)

    def test_validation_errors_are_field_level(self, tmp_path: Path) -> None:
        """Validation failures name the offending field path."""
        config_file = tmp_path / "invalid.yaml"
        _ = config_file.write_text("scan:\n  concurrency: 0\n", encoding="utf-8")

        with pytest.raises(ConfigurationError) as exc_info:
            _ = load_main_config(config_file)

        message = str(exc_info.value)
        assert "Field: scan → concurrency" in message
        assert "Type: greater_than_equal" in message
        assert str(config_file) in message

    def test_missing_environment_variable(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Unset variables in the file raise EnvironmentVariableError."""
        monkeypatch.delenv("DISKSCOPE_UNSET", raising=False)
        config_file = tmp_path / "env.yaml"
        _ = config_file.write_text("cache:\n  directory: ${DISKSCOPE_UNSET}/x\n", encoding="utf-8")

        with pytest.raises(EnvironmentVariableError, match="DISKSCOPE_UNSET"):
            _ = load_main_config(config_file)


@pytest.mark.unit
class TestDiscovery:
    """Test configuration file discovery."""

    def test_no_config_found(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Without any file discovery returns None and defaults are used."""
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))

        assert discover_config_file() is None
        assert load_config() == MainConfig()

    def test_current_directory_first(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """./diskscope.yaml wins over the user configuration."""
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
        user_config = tmp_path / "xdg" / "diskscope" / "config.yaml"
        user_config.parent.mkdir(parents=True)
        _ = user_config.write_text("display:\n  depth: 1\n", encoding="utf-8")
        _ = (tmp_path / "diskscope.yaml").write_text("display:\n  depth: 5\n", encoding="utf-8")

        assert discover_config_file() == Path("diskscope.yaml")
        assert load_config().display.depth == 5

    def test_user_config(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """The user configuration is found under XDG_CONFIG_HOME."""
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
        user_config = tmp_path / "xdg" / "diskscope" / "config.yaml"
        user_config.parent.mkdir(parents=True)
        _ = user_config.write_text("display:\n  depth: 1\n", encoding="utf-8")

        assert discover_config_file() == user_config
        assert load_config().display.depth == 1

    def test_explicit_path_skips_discovery(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """An explicit path is loaded even when others exist."""
        monkeypatch.chdir(tmp_path)
        _ = (tmp_path / "diskscope.yaml").write_text("display:\n  depth: 5\n", encoding="utf-8")
        explicit = tmp_path / "other.yaml"
        _ = explicit.write_text("display:\n  depth: 7\n", encoding="utf-8")

        assert load_config(explicit).display.depth == 7
