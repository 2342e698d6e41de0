"""Remote secret naming and environment tagging."""
from typing import Iterable

KEY_PLACEHOLDER = "$key"
PROJECT_PLACEHOLDER = "$project"
ENV_PLACEHOLDER = "$env"


def resolve_secret_name(template: str, key: str, project: str, env: str) -> str:
    """
    Build the fully qualified remote secret name.

    Placeholders are replaced literally, once each, in the order
    $key, $project, $env. Unknown placeholders pass through untouched.

    Example:
        >>> resolve_secret_name("$env/$project/$key", "db", "acme", "staging")
        'staging/acme/db'
    """
    name = template.replace(KEY_PLACEHOLDER, key)
    name = name.replace(PROJECT_PLACEHOLDER, project)
    name = name.replace(ENV_PLACEHOLDER, env)
    return name


def is_production(environment: str, production_environments: Iterable[str]) -> bool:
    return environment.lower() in {e.lower() for e in production_environments}


def is_local(environment: str, local_environments: Iterable[str]) -> bool:
    return environment.lower() in {e.lower() for e in local_environments}


def environment_tag(environment: str, production_tag: str, production_environments: Iterable[str]) -> str:
    """
    Normalize an environment name for secret names and notifications.

    The name is lowercased; any production environment is reported as
    production_tag instead, unless that tag is empty.
    """
    tag = environment.lower()
    if production_tag and is_production(environment, production_environments):
        tag = production_tag
    return tag
