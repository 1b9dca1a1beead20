import os
import re
from typing import Any, Dict, Optional

import yaml

from pipesim.utils.logging import get_logger

# Pattern to match ${VAR} or ${env:VAR}
# Captures the variable name in group 1
ENV_PATTERN = re.compile(r"\$\{(?:env:)?([A-Za-z0-9_]+)\}")


def _merge_snapshots(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge ``override`` onto ``base`` (a later document onto an earlier one).

    Rules:
    1. Dicts are merged recursively.
    2. 'components' and 'connections' lists are appended.
    3. Other types (and other lists) are overwritten by the override.
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _merge_snapshots(result[key], value)
        elif (
            key in ("components", "connections")
            and isinstance(value, list)
            and isinstance(result.get(key), list)
        ):
            get_logger().debug(
                "Appending snapshot list",
                key=key,
                existing_count=len(result[key]),
                new_count=len(value),
            )
            result[key] = result[key] + value
        else:
            result[key] = value
    return result


def load_yaml_with_env(path: str, env: Optional[str] = None) -> Dict[str, Any]:
    """Load a YAML snapshot file with environment variable substitution and imports.

    Supports:
    - ${VAR_NAME} substitution
    - 'imports' list of relative paths (components/connections are appended;
      other keys in the importing file override the imported ones)
    - 'environments' overrides based on env param

    Args:
        path: Path to YAML file
        env: Environment name (e.g., 'prod', 'dev') to apply overrides

    Returns:
        Parsed dictionary (merged with imports and env overrides)

    Raises:
        FileNotFoundError: If file does not exist
        ValueError: If environment variable is missing
        yaml.YAMLError: If YAML parsing fails
    """
    logger = get_logger()
    logger.debug("Loading YAML snapshot", path=path, env=env)

    if not os.path.exists(path):
        logger.error("Snapshot file not found", path=path)
        raise FileNotFoundError(f"YAML file not found: {path}")

    abs_path = os.path.abspath(path)
    base_dir = os.path.dirname(abs_path)

    with open(abs_path, "r", encoding="utf-8") as f:
        content = f.read()

    def replace_env(match):
        var_name = match.group(1)
        value = os.environ.get(var_name)
        if value is None:
            logger.error("Missing required environment variable", variable=var_name, file=abs_path)
            raise ValueError(f"Missing environment variable: {var_name}")
        return value

    substituted_content = ENV_PATTERN.sub(replace_env, content)

    try:
        data = yaml.safe_load(substituted_content) or {}
    except yaml.YAMLError as e:
        logger.error("YAML parsing failed", path=abs_path, error=str(e))
        raise

    if not isinstance(data, dict):
        raise ValueError(f"Snapshot file must contain a mapping at the top level: {path}")

    imports = data.pop("imports", [])
    if imports:
        if isinstance(imports, str):
            imports = [imports]

        # imports form the base; the importing document is merged last and wins
        merged_data: Dict[str, Any] = {}
        for import_path in imports:
            if not os.path.isabs(import_path):
                full_import_path = os.path.join(base_dir, import_path)
            else:
                full_import_path = import_path

            if not os.path.exists(full_import_path):
                logger.error(
                    "Imported snapshot file not found",
                    import_path=import_path,
                    parent_file=abs_path,
                )
                raise FileNotFoundError(f"Imported YAML file not found: {full_import_path}")

            imported_data = load_yaml_with_env(full_import_path, env=env)
            merged_data = _merge_snapshots(merged_data, imported_data)

        data = _merge_snapshots(merged_data, data)
        logger.debug("All imports processed and merged", import_count=len(imports))

    if env:
        environments = data.get("environments", {})
        if env in environments:
            logger.debug(
                "Applying environment overrides",
                env=env,
                override_keys=list(environments[env].keys()),
            )
            data = _merge_snapshots(data, environments[env])

    data.pop("environments", None)
    return data
