"""CLI entrypoint for secrets-driver."""
import sys
import json
import argparse
import logging
from pathlib import Path

import yaml

from .validators import validate_secret_key, validate_secret_keys

VERSION = "0.1.0"

# Configure logging to stderr
logging.basicConfig(
    level=logging.WARNING,
    format="%(message)s",
    stream=sys.stderr
)
logger = logging.getLogger(__name__)


def _format_value(value):
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True)
    return str(value)


def _secret_cache(args):
    from secrets_driver.secrets.workflows.secret_operations import build_secret_cache
    from secrets_driver.secrets.domains.config_loader import load_config

    return build_secret_cache(load_config(getattr(args, "config", None)))


def cmd_version(args):
    """Show version information."""
    print(f"secrets-driver {VERSION}")


def cmd_managers(args):
    """List registered secrets manager backends."""
    from secrets_driver.secrets.domains.registry import available_managers

    for identifier in available_managers():
        print(identifier)


def cmd_config_set_path(args):
    """Set config file path preference."""
    from secrets_driver.secrets.domains.preferences import CONFIG_PATH_PREFERENCE, set_preference

    config_path = Path(args.path).resolve()

    if not config_path.exists():
        print(f"Error: Config file does not exist: {config_path}", file=sys.stderr)
        sys.exit(1)

    if not config_path.is_file():
        print(f"Error: Path is not a file: {config_path}", file=sys.stderr)
        sys.exit(1)

    set_preference(CONFIG_PATH_PREFERENCE, str(config_path))
    print(f"Config path set to: {config_path}")


def cmd_config_show(args):
    """Show current config file path."""
    from secrets_driver.secrets.domains.config_loader import default_config_path
    from secrets_driver.secrets.domains.preferences import CONFIG_PATH_PREFERENCE, get_preference

    config_path_pref = get_preference(CONFIG_PATH_PREFERENCE)

    if config_path_pref:
        config_path = Path(config_path_pref)
        if config_path.exists():
            print(f"Config path: {config_path}")
        else:
            print(f"Config path (from preference, but file not found): {config_path}")
        print("Source: preference")
        return

    default_config = default_config_path()
    print(f"Config path: {default_config}")
    if default_config.exists():
        print("Source: default")
    else:
        print("Source: default (file not found, built-in settings apply)")


def cmd_config_clear(args):
    """Clear config path preference."""
    from secrets_driver.secrets.domains.config_loader import default_config_path
    from secrets_driver.secrets.domains.preferences import CONFIG_PATH_PREFERENCE, clear_preference

    clear_preference(CONFIG_PATH_PREFERENCE)
    print(f"Config path preference cleared. Will use default: {default_config_path()}")


def cmd_config_dump(args):
    """Print the effective settings as YAML."""
    from secrets_driver.secrets.domains.config_loader import load_config

    config = load_config(args.config)
    print(f"# Source: {config.source_path or 'built-in defaults'}")
    print(yaml.safe_dump(config.to_dict(), sort_keys=False, allow_unicode=True), end="")


def cmd_secrets_name(args):
    """Print the remote secret name a key resolves to."""
    validate_secret_key(args.key)
    print(_secret_cache(args).remote_name(args.key))


def cmd_secrets_get(args):
    """Resolve one or more secrets."""
    validate_secret_keys(args.keys)
    records = _secret_cache(args).resolve_secret_records(args.keys)

    if args.json:
        print(json.dumps({record.key: record.value for record in records}, indent=2, sort_keys=True))
    else:
        for record in records:
            if not record.resolved:
                continue
            if args.quiet:
                # Quiet mode: output only value, no formatting
                print(_format_value(record.value))
            else:
                print(f"Secret '{record.key}' ({record.name}, from {record.source}): {_format_value(record.value)}")

    missing = [record.key for record in records if not record.resolved]
    if missing:
        print(f"Error: Secret(s) not available: {', '.join(missing)}", file=sys.stderr)
        sys.exit(1)
    sys.exit(0)


def build_parser():
    parser = argparse.ArgumentParser(
        prog="secrets-driver",
        description="secrets-driver CLI - resolve application secrets from a remote secrets manager",
        epilog="""
Exit codes:
  0 - Success
  1 - Runtime error (configuration, secret not available, etc.)
  2 - Usage error (invalid arguments, invalid secret key format, etc.)

Environment variables:
  SECRETS_DRIVER_CONFIG  - Path to the settings file
  SECRETS_DRIVER_*       - Override individual settings (see 'config dump')
  APP_ENV                - Application environment name
  APP_NAME               - Used to derive the default project tag

Configuration:
  Default location: ~/.config/secrets-driver/config.yml
  Custom path: Set with 'secrets-driver config set-path <path>'
  View current: Run 'secrets-driver config show'
        """
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log debug information to stderr"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser(
        "version",
        help="Show version information",
        description="Display the current version of secrets-driver"
    )

    subparsers.add_parser(
        "managers",
        help="List secrets manager backends",
        description="List the identifiers accepted by the 'manager' setting"
    )

    # config command
    config_parser = subparsers.add_parser(
        "config",
        help="Configuration management",
        description="Manage secrets-driver configuration"
    )
    config_subparsers = config_parser.add_subparsers(dest="config_command")

    config_set_path_parser = config_subparsers.add_parser(
        "set-path",
        help="Set config file path",
        description="""
Set the configuration file path preference.

This stores the absolute path to your config file in:
~/.config/secrets-driver/preferences.json
        """
    )
    config_set_path_parser.add_argument("path", help="Path to config file")

    config_subparsers.add_parser(
        "show",
        help="Show current config path",
        description="Display the current configuration file path and its source"
    )

    config_subparsers.add_parser(
        "clear",
        help="Clear config path preference",
        description="Remove the config path preference and fall back to the default location"
    )

    config_dump_parser = config_subparsers.add_parser(
        "dump",
        help="Print effective settings",
        description="Print the settings after defaults, config file and environment overrides are applied"
    )
    config_dump_parser.add_argument("--config", help="Settings file to load instead of the configured one")

    # secrets command
    secrets_parser = subparsers.add_parser(
        "secrets",
        help="Secret resolution",
        description="Resolve secrets through the cache and the configured secrets manager"
    )
    secrets_subparsers = secrets_parser.add_subparsers(dest="secrets_command")

    get_parser = secrets_subparsers.add_parser(
        "get",
        help="Resolve secret values",
        description="""
Resolve one or more logical secret keys.

Behavior:
  1. Checks the cache (within the same process only)
  2. Fetches from the configured secrets manager
  3. Falls back to the backup cache entry if the fetch fails

Exit codes:
  0 - All secrets resolved
  1 - At least one secret not available
  2 - Invalid secret key format
        """
    )
    get_parser.add_argument("keys", nargs="+", metavar="KEY", help="Logical secret key (format: [A-Za-z0-9_.-]+)")
    get_parser.add_argument("--config", help="Settings file to load instead of the configured one")
    get_parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Output only the secret values, one per line"
    )
    get_parser.add_argument("--json", action="store_true", help="Output all values as a JSON object")

    name_parser = secrets_subparsers.add_parser(
        "name",
        help="Show the remote name of a secret",
        description="Print the fully qualified remote name a logical key resolves to"
    )
    name_parser.add_argument("key", help="Logical secret key")
    name_parser.add_argument("--config", help="Settings file to load instead of the configured one")

    return parser, config_parser, secrets_parser


def main(argv=None):
    """Main CLI entrypoint.

    Exit codes:
        0 - Success
        1 - Runtime errors (configuration, secret not available, etc.)
        2 - Usage errors (invalid arguments, invalid secret key format, etc.)
    """
    parser, config_parser, secrets_parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    # If no command provided, show help and exit with usage error code
    if not args.command:
        parser.print_help()
        sys.exit(2)

    handlers = {
        ("config", "set-path"): cmd_config_set_path,
        ("config", "show"): cmd_config_show,
        ("config", "clear"): cmd_config_clear,
        ("config", "dump"): cmd_config_dump,
        ("secrets", "get"): cmd_secrets_get,
        ("secrets", "name"): cmd_secrets_name,
    }

    try:
        if args.command == "version":
            cmd_version(args)
        elif args.command == "managers":
            cmd_managers(args)
        elif args.command == "config":
            handler = handlers.get(("config", args.config_command))
            if handler is None:
                config_parser.print_help()
                sys.exit(2)
            handler(args)
        elif args.command == "secrets":
            handler = handlers.get(("secrets", args.secrets_command))
            if handler is None:
                secrets_parser.print_help()
                sys.exit(2)
            handler(args)
        else:
            parser.print_help()
            sys.exit(2)
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
