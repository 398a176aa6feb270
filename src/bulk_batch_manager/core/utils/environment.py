# -*- coding: utf-8 -*-

"""
Connection settings read from the process environment.

BULK_INSTANCE_URL and BULK_SESSION_ID are required to talk to the service.
BULK_API_VERSION is optional. Any of them may come from a .env.local or .env
file in the working directory; variables already set in the process win.
"""

import os
import logging
from pathlib import Path
from typing import Optional
import dotenv

REQUIRED_ENV_VARS = ('BULK_INSTANCE_URL', 'BULK_SESSION_ID')
ENV_FILE_NAMES = ('.env.local', '.env')


def find_env_file(directory: Optional[Path] = None) -> Optional[Path]:
    """First of .env.local, .env present in directory (default: cwd)."""
    directory = Path(directory) if directory else Path.cwd()
    for name in ENV_FILE_NAMES:
        candidate = directory / name
        if candidate.is_file():
            return candidate
    return None


def load_environment_variables(env_file: Optional[str] = None, verbose: bool = False) -> bool:
    """
    Load settings from env_file, or from the first .env file found in cwd.

    Returns:
        True if a file was loaded.
    """
    if env_file:
        env_path = Path(env_file)
        if not env_path.is_file():
            if verbose:
                logging.warning(f"Environment file not found: {env_path}")
            return False
    else:
        env_path = find_env_file()
        if env_path is None:
            return False

    dotenv.load_dotenv(env_path, override=False)
    if verbose:
        logging.debug(f"Loaded environment from: {env_path}")
    return True


def validate_required_env_vars() -> list:
    """Names of the required connection settings that are unset or empty."""
    return [name for name in REQUIRED_ENV_VARS if not os.getenv(name)]


def setup_environment(verbose: bool = False, env_file: Optional[str] = None) -> bool:
    """
    Load .env settings on package import. A missing file is not an error,
    the settings can be exported in the shell or passed on the command line.
    """
    loaded = load_environment_variables(env_file, verbose)
    if verbose and not loaded:
        logging.debug(f"No {' or '.join(ENV_FILE_NAMES)} in {Path.cwd()}, using process environment only.")
    return loaded
