"""Actionable error catalog for pgselfhost."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "invalid_directory": {
        "what": "Invalid installation directory: {path}",
        "next": "Use an absolute path without ':' or control characters, e.g. `/srv/postgres16`.",
    },
    "directory_is_file": {
        "what": "Installation path exists and is not a directory: {path}",
        "next": "Remove the file or pass a different `--dir`.",
    },
    "invalid_host_address": {
        "what": "Invalid server address: {value}",
        "next": "Pass an IPv4/IPv6 address or a hostname with `--ip`, or omit it to auto-detect.",
    },
    "invalid_permitted_address": {
        "what": "Invalid permitted address: {value}",
        "next": "Use IPv4/IPv6 addresses or CIDR ranges such as `10.0.0.5` or `192.168.1.0/24`.",
    },
    "access_mode_required": {
        "what": "No permitted addresses were supplied and open access was not requested.",
        "next": (
            "Pass one or more `--allow` addresses, `--internal-only` to keep the database "
            "on the Docker network, or `--open-access` to accept any address."
        ),
    },
    "access_mode_conflict": {
        "what": "Permitted addresses, internal-only access and open access cannot be combined.",
        "next": "Choose one of `--allow`, `--internal-only` or `--open-access`.",
    },
    "invalid_port": {
        "what": "Invalid {label} port: {value}",
        "next": "Use an integer between 1 and 65535 that is not used by the other service.",
    },
    "credentials_not_found": {
        "what": "No previous environment file found at {path}",
        "next": "Run once without `--keep-credentials` to generate a fresh credential set.",
    },
    "credentials_incomplete": {
        "what": "Previous environment file {path} is missing or has invalid values for: {keys}",
        "next": "Fix the file or run without `--keep-credentials` to generate fresh credentials.",
    },
    "artifact_write_failed": {
        "what": "Could not write {artifact}: {reason}",
        "next": "Check permissions and free space in the installation directory, then run again.",
    },
    "confirmation_required": {
        "what": "Writing the bundle requires confirmation.",
        "next": "Pass `--yes` when running with `--non-interactive`.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
