"""
Entrypoint: load .env and config.yaml, issue a single request against the site
"""

import argparse
import asyncio
import json
import sys

import structlog
from dotenv import load_dotenv

from waterwheel.config import Config
from waterwheel.errors import RequestError
from waterwheel.log import setup_logging
from waterwheel.methods import Method, resolve_method
from waterwheel.request import create_request

logger = structlog.get_logger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Issue a request against a Drupal REST API")
    parser.add_argument('method', help="HTTP method, e.g. GET or PATCH")
    parser.add_argument('path', help="path relative to drupal.base_url, e.g. node/1?_format=json")
    parser.add_argument('body', nargs='?', default=None, help="JSON request body")
    parser.add_argument('--config', default=None, help="path to config.yaml")
    return parser.parse_args(argv)


async def run(args) -> int:
    """Build the request helper from config and issue one call"""
    try:
        config = Config(args.config)
    except (FileNotFoundError, ValueError) as e:
        setup_logging()
        logger.error("invalid_configuration", error=str(e))
        return 2
    setup_logging(config.logging.get('level') or 'INFO', config.logging.get('format') or '%(message)s')

    try:
        method = resolve_method(args.method)
        body = json.loads(args.body) if args.body is not None else None
    except ValueError as e:
        logger.error("invalid_arguments", error=str(e))
        return 2

    try:
        request = create_request(config)
    except ValueError as e:
        logger.error("invalid_configuration", error=str(e))
        return 2

    async with request:
        try:
            token = None
            if method is not Method.GET:
                token = await request.get_xcsrf_token()
            payload = await request.issue_request(
                method,
                args.path,
                token,
                {'Content-Type': 'application/json'} if body is not None else None,
                body,
            )
        except RequestError as e:
            logger.error("request_error", status=e.status, error=e.message)
            return 1

    print(json.dumps(payload, indent=2, default=str))
    return 0


def main(argv=None) -> int:
    load_dotenv()
    return asyncio.run(run(parse_args(argv)))


if __name__ == "__main__":
    sys.exit(main())
