"""Configuration loader for pgselfhost."""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from pgselfhost.errors import ValidationError


class ConfigLoader:
    """Loads YAML configuration files for CLI defaults."""

    SUPPORTED_KEYS = {
        "dir",
        "ip",
        "allow",
        "open_access",
        "internal_only",
        "db_port",
        "pgadmin_port",
        "database_name",
        "pgadmin_email",
        "keep_credentials",
        "non_interactive",
        "schedule_backups",
        "verbose",
        "log_file",
    }

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.exists():
            raise ValidationError(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise ValidationError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise ValidationError("Config file must contain a YAML mapping at the root.")

        unknown = sorted(set(parsed.keys()) - self.SUPPORTED_KEYS)
        if unknown:
            unknown_list = ", ".join(unknown)
            raise ValidationError(f"Unknown configuration keys: {unknown_list}")

        allow = parsed.get("allow")
        if allow is not None:
            if isinstance(allow, str):
                parsed["allow"] = [allow]
            elif isinstance(allow, list) and all(isinstance(item, str) for item in allow):
                parsed["allow"] = list(allow)
            else:
                raise ValidationError("Config key 'allow' must be a string or a list of strings.")

        return parsed
