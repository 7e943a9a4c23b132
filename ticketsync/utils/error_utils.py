"""Common error and validation utility functions
"""

import os
from typing import List, Optional


def check_for_missing_env_vars(env_vars: dict):
    """Checks whether any required environment values are undefined.

    :param env_vars: The dictionary of environment variables.
    """
    missing_keys = [k for k, v in env_vars.items() if v is None]
    if missing_keys:
        missing_keys_str = ", ".join(missing_keys)
        raise EnvironmentError(
            f"Missing required environment variables: {missing_keys_str}"
        )


def get_bool_env_var(var_name: str, default: bool = False) -> bool:
    """Get a bool environment variable.

    :param var_name: The environment variable name.
    :param default: The value to return if the variable is not set.
    :return: The environment variable value.
    """
    val = os.environ.get(var_name)
    if val is None or val.strip() == "":
        return default
    return val.strip().lower() in ["true", "1", "t", "y", "yes"]


def get_number_env_var(var_name: str, default=None, cast=int):
    """Get a numeric environment variable.

    :param var_name: The environment variable name.
    :param default: The value to return if the variable is not set.
    :param cast: The numeric type to convert the value to.
    :return: The environment variable value.
    """
    val = os.environ.get(var_name)
    if val is None or val.strip() == "":
        return default
    try:
        return cast(val.strip())
    except ValueError as e:
        raise EnvironmentError(
            f"Environment variable {var_name} is not a valid {cast.__name__}: {val!r}"
        ) from e


def get_int_list_env_var(
    var_name: str, default: Optional[List[int]] = None
) -> List[int]:
    """Get a comma-separated list of integers from an environment variable.

    :param var_name: The environment variable name.
    :param default: The value to return if the variable is not set.
    :return: The list of integers.
    """
    val = os.environ.get(var_name)
    if val is None or val.strip() == "":
        return list(default or [])
    try:
        return [int(item) for item in val.split(",") if item.strip()]
    except ValueError as e:
        raise EnvironmentError(
            f"Environment variable {var_name} is not a list of integers: {val!r}"
        ) from e
