"""Input validation for CLI arguments."""
import re
import sys

# Logical keys end up in cache keys and remote names; keep them path-safe
SECRET_KEY_PATTERN = r'^[A-Za-z0-9_.-]+$'


def validate_secret_key(key: str) -> None:
    """
    Validate a logical secret key.

    Args:
        key: Secret key to validate

    Raises:
        SystemExit with code 2 if validation fails
    """
    if not key:
        print("Error: Secret key cannot be empty", file=sys.stderr)
        print("\nSecret keys must match: [A-Za-z0-9_.-]", file=sys.stderr)
        sys.exit(2)

    if not re.match(SECRET_KEY_PATTERN, key):
        print(f"Error: Invalid secret key '{key}'", file=sys.stderr)
        print("\nAllowed characters: letters, numbers, dots (.), underscores (_), hyphens (-)", file=sys.stderr)
        print("Not allowed: slashes, spaces, placeholders ($), other special characters", file=sys.stderr)
        print("\nExamples of valid keys:", file=sys.stderr)
        print("  ✓ primary-db", file=sys.stderr)
        print("  ✓ reporting_replica", file=sys.stderr)
        print("\nExamples of invalid keys:", file=sys.stderr)
        print("  ✗ db/primary (contains slash)", file=sys.stderr)
        print("  ✗ $env (contains placeholder)", file=sys.stderr)
        sys.exit(2)


def validate_secret_keys(keys) -> None:
    seen = set()
    for key in keys:
        validate_secret_key(key)
        if key in seen:
            print(f"Error: Secret key '{key}' given more than once", file=sys.stderr)
            sys.exit(2)
        seen.add(key)
