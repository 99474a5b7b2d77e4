"""Configuration loading from pyproject.toml."""

import tomllib
from dataclasses import dataclass
from pathlib import Path


class ConfigError(Exception):
    """Error in nodeflow configuration."""


@dataclass(slots=True, frozen=True)
class NodeflowConfig:
    """Configuration loaded from pyproject.toml.

    All relative paths are resolved from the project root (directory containing pyproject.toml).
    """

    library: tuple[Path, ...] = ()
    flow: Path | None = None
    output: Path | None = None
    project_root: Path | None = None


def find_pyproject_toml(start_dir: Path | None = None) -> Path | None:
    """Find pyproject.toml by walking up from start_dir.

    Args:
        start_dir: Starting directory. Defaults to current working directory.

    Returns:
        Path to pyproject.toml if found, None otherwise.

    """
    if start_dir is None:
        start_dir = Path.cwd()

    current = start_dir.resolve()

    while True:
        candidate = current / "pyproject.toml"
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            return None
        current = parent


def _resolve_path(value: object, key: str, project_root: Path) -> Path:
    if not isinstance(value, str):
        msg = f"Invalid [tool.nodeflow].{key}: expected string path"
        raise ConfigError(msg)
    path = Path(value)
    if not path.is_absolute():
        path = project_root / path
    return path


def _parse_library(value: object, project_root: Path) -> tuple[Path, ...]:
    """Parse the library field: a single path or a list of paths."""
    if isinstance(value, str):
        return (_resolve_path(value, "library", project_root),)
    if isinstance(value, list):
        return tuple(_resolve_path(item, "library", project_root) for item in value)
    msg = "Invalid [tool.nodeflow].library: expected string path or list of paths"
    raise ConfigError(msg)


def load_config(pyproject_path: Path) -> NodeflowConfig:
    """Load and validate [tool.nodeflow] config from pyproject.toml.

    Args:
        pyproject_path: Path to pyproject.toml

    Returns:
        Parsed NodeflowConfig

    Raises:
        ConfigError: If the configuration is invalid

    """
    project_root = pyproject_path.parent

    with pyproject_path.open("rb") as f:
        try:
            data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            msg = f"Invalid TOML in {pyproject_path}: {e}"
            raise ConfigError(msg) from e

    section = data.get("tool", {}).get("nodeflow", {})
    if not section:
        return NodeflowConfig(project_root=project_root)

    library: tuple[Path, ...] = ()
    if "library" in section:
        library = _parse_library(section["library"], project_root)

    flow = _resolve_path(section["flow"], "flow", project_root) if "flow" in section else None
    output = _resolve_path(section["output"], "output", project_root) if "output" in section else None

    return NodeflowConfig(
        library=library,
        flow=flow,
        output=output,
        project_root=project_root,
    )


def get_config() -> NodeflowConfig:
    """Get config from pyproject.toml in current directory or parents.

    Returns:
        NodeflowConfig (may be empty if no pyproject.toml or no [tool.nodeflow] section)

    """
    pyproject_path = find_pyproject_toml()
    if pyproject_path is None:
        return NodeflowConfig()
    return load_config(pyproject_path)
