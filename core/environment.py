"""
Core Module - Environment.

============================================================
RESPONSIBILITY
============================================================
Loads and validates the required environment configuration.

- Reads credentials.env into the process environment
- Module actions inherit the environment they need
- A missing file or variable is a fatal startup error

============================================================
"""

import logging
import os
from pathlib import Path
from typing import Iterable, List, Mapping, Optional, Union

from dotenv import load_dotenv

from .constants import REQUIRED_ENV_VARS
from .exceptions import MissingConfigError


logger = logging.getLogger(__name__)


def load_environment(env_file: Union[str, Path]) -> Path:
    """
    Load the credentials file into os.environ.

    Variables already present in the environment take precedence.

    Raises:
        MissingConfigError: If the file does not exist
    """
    path = Path(env_file)
    if not path.is_file():
        raise MissingConfigError(path.name, source=str(path))

    load_dotenv(path, override=False)
    logger.info(f"Loaded environment from {path}")
    return path


def missing_variables(
    required: Iterable[str] = REQUIRED_ENV_VARS,
    environ: Optional[Mapping[str, str]] = None,
) -> List[str]:
    """Names of required variables that are unset or empty."""
    environ = os.environ if environ is None else environ
    return [name for name in required if not environ.get(name)]


def check_environment(
    required: Iterable[str] = REQUIRED_ENV_VARS,
    environ: Optional[Mapping[str, str]] = None,
) -> None:
    """
    Verify every required variable is set.

    Raises:
        MissingConfigError: For the first missing variable
    """
    missing = missing_variables(required, environ)
    for name in missing:
        logger.error(f"Required environment variable {name} is not set")
    if missing:
        raise MissingConfigError(missing[0])


__all__ = [
    "load_environment",
    "missing_variables",
    "check_environment",
]
