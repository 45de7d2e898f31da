"""
iamrotate Command Line Interface.

Runs a single rotation pass for the IAM user behind the current AWS
credentials and exits 0 on success, 1 on any failure.
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from iamrotate import config
from iamrotate.config import FLAG_USAGES, RotationSettings
from iamrotate.errors import RotationError
from iamrotate.rotator import KeyRotator

logger = logging.getLogger("iamrotate")


def setup_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    if not verbose:
        # boto3 and httpx are chatty at INFO
        logging.getLogger("botocore").setLevel(logging.WARNING)
        logging.getLogger("httpx").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="iamrotate",
        description="Rotate the AWS IAM access keys of the current user",
    )
    parser.add_argument(
        "-maxDaysAllowed", "--maxDaysAllowed", "--max-days-allowed",
        dest="max_days_allowed", type=int, default=config.MAX_DAYS_ALLOWED,
        help=FLAG_USAGES["maxDaysAllowed"],
    )
    parser.add_argument(
        "-maxKeysAllowed", "--maxKeysAllowed", "--max-keys-allowed",
        dest="max_keys_allowed", type=int, default=config.MAX_KEYS_ALLOWED,
        help=FLAG_USAGES["maxKeysAllowed"],
    )
    parser.add_argument(
        "-region", "--region", dest="region", default=config.REGION,
        help=FLAG_USAGES["region"],
    )
    parser.add_argument(
        "-profile", "--profile", dest="profile", default=config.PROFILE,
        help=FLAG_USAGES["profile"],
    )
    parser.add_argument(
        "-filename", "--filename", dest="filename", default=config.FILENAME,
        help=FLAG_USAGES["filename"],
    )
    parser.add_argument(
        "-circleci", "--circleci", dest="circleci_token", default=config.CIRCLECI_TOKEN,
        help=FLAG_USAGES["circleci"],
    )
    parser.add_argument(
        "--circleci-context-id", dest="circleci_context_id",
        default=config.CIRCLECI_CONTEXT_ID, help=FLAG_USAGES["circleci_context_id"],
    )
    parser.add_argument(
        "--endpoint-url", dest="endpoint_url", default=config.ENDPOINT_URL,
        help=FLAG_USAGES["endpoint_url"],
    )
    parser.add_argument("--dry-run", action="store_true", help=FLAG_USAGES["dry_run"])
    parser.add_argument("--json", action="store_true", help="Print the result as JSON on stdout")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose output")
    return parser


def settings_from_args(args: argparse.Namespace) -> RotationSettings:
    return RotationSettings(
        region=args.region,
        profile=args.profile,
        max_days_allowed=args.max_days_allowed,
        max_keys_allowed=args.max_keys_allowed,
        filename=args.filename,
        circleci_token=args.circleci_token,
        circleci_context_id=args.circleci_context_id,
        endpoint_url=args.endpoint_url,
        dry_run=args.dry_run,
    )


def main(argv: Optional[List[str]] = None, store=None) -> int:
    """Main entry point for the CLI."""
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    try:
        config.check_environment()
        settings = settings_from_args(args).validate()
        logger.debug(f"settings: {settings!r}")
        rotator = KeyRotator.from_settings(settings, store=store)
        result = rotator.rotate(dry_run=settings.dry_run)
    except RotationError as e:
        logger.error(str(e))
        return 1

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))

    logger.info("exiting with code 0")
    return 0


if __name__ == "__main__":
    sys.exit(main())
