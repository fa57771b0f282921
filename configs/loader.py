"""Configuration loader for orchestrator presets.

Provides flexible loading of OrchestratorConfig from Python files.
"""

import importlib
import importlib.util
import logging
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from configs.base import OrchestratorConfig

logger = logging.getLogger(__name__)


def load_config(config_path: str, project_root: Path | None = None) -> "OrchestratorConfig":
    """Load config from a Python file or module.

    Supports multiple formats:
    - Module path: 'configs.presets.local'
    - File path: 'configs/presets/local.py'
    - Absolute path: '/path/to/config.py'

    The config file must contain a 'config' variable holding an
    OrchestratorConfig instance.

    Args:
        config_path: Import path like 'configs.presets.local' or a file path.
        project_root: Optional project root for relative paths.

    Returns:
        OrchestratorConfig instance.

    Raises:
        ValueError: If the file cannot be loaded or holds no valid config.
    """
    # Import here to avoid circular dependency
    from configs.base import OrchestratorConfig

    try:
        config = _load_config_module(config_path, project_root)
    except (ModuleNotFoundError, ImportError) as e:
        raise ValueError(f"Failed to import config module '{config_path}': {e}") from e
    except AttributeError as e:
        raise ValueError(f"Config file must contain a 'config' variable: {e}") from e
    except (OSError, SyntaxError) as e:
        raise ValueError(f"Failed to load config from '{config_path}': {e}") from e

    if not isinstance(config, OrchestratorConfig):
        raise ValueError(
            f"Config object must be OrchestratorConfig instance, got {type(config).__name__}"
        )

    logger.info(f"Loaded config from {config_path}")
    return config


def _load_config_module(config_path: str, project_root: Path | None = None):
    """Resolve a module path or file path to its 'config' object."""
    if config_path.startswith(("configs/", "configs.")) and not Path(config_path).is_absolute():
        return _load_as_module(config_path)
    return _load_as_file(config_path, project_root)


def _load_as_module(config_path: str):
    """Import 'configs.presets.local' (or 'configs/presets/local.py') and read 'config'."""
    module_path = config_path.removesuffix(".py").replace("/", ".")

    try:
        module = importlib.import_module(module_path)
        return module.config
    except (ModuleNotFoundError, ImportError, AttributeError):
        # Treat the last part as a variable name inside the parent module
        parts = module_path.split(".")
        module = importlib.import_module(".".join(parts[:-1]))
        return getattr(module, parts[-1])


def _load_as_file(config_path: str, project_root: Path | None = None):
    """Execute a config file and read its 'config' variable."""
    config_file = Path(config_path)

    if not config_file.is_absolute() and project_root:
        config_file = project_root / config_path

    if not config_file.exists():
        raise FileNotFoundError(f"Config file not found: {config_file}")

    spec = importlib.util.spec_from_file_location("orchestrator_config", config_file)
    if spec is None or spec.loader is None:
        raise ImportError(f"Cannot load config from path: {config_path}")

    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module.config
