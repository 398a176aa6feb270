"""
CLI entry point for Bulk Batch Manager.

Loads .env files and configures logging before the click group parses its
options, so settings read from the environment are already in place.
"""

import sys
import logging


def _load_cli_environment(verbose=False):
    """Load .env files and report connection settings that are still unset."""
    logger = logging.getLogger(__name__)

    from ..core.utils.environment import setup_environment, validate_required_env_vars
    setup_environment(verbose=verbose)

    # may still come from --instance-url / --session-id
    missing = validate_required_env_vars()
    if missing:
        logger.debug(f"Not set in environment: {', '.join(missing)}")


def main():
    """Console script entry point (bulkbm)."""
    verbose = '-v' in sys.argv or '--verbose' in sys.argv
    quiet = '-q' in sys.argv or '--quiet' in sys.argv

    from .utils import setup_logging
    setup_logging(verbose=verbose, quiet=quiet)
    _load_cli_environment(verbose=verbose)

    logger = logging.getLogger(__name__)
    try:
        from .cli import cli
        cli()
    except KeyboardInterrupt:
        logger.info("Interrupted. Jobs already created stay in the journal: see 'bulkbm list-jobs --pending'.")
        sys.exit(130)  # SIGINT


if __name__ == '__main__':
    main()
