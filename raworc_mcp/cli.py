import argparse
import logging
import sys
from typing import List, Optional

from .client import RaworcClient
from .errors import ConfigError, RaworcError
from .logging_setup import setup_logging
from .settings import load_settings
from .stdio import serve
from .tools import Dispatcher

logger = logging.getLogger("raworc_mcp.stdio")


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="raworc-mcp", description="Model Context Protocol server for Raworc")
    ap.add_argument("--api-url", help="Raworc API URL (env RAWORC_API_URL)")
    ap.add_argument("--auth-token", help="Bearer token (env RAWORC_AUTH_TOKEN)")
    ap.add_argument("--username", help="Username used for login and 401 re-auth (env RAWORC_USERNAME)")
    ap.add_argument("--password", help="Password (env RAWORC_PASSWORD)")
    ap.add_argument("--default-space", help="Space used when a tool call names none (env RAWORC_DEFAULT_SPACE)")
    ap.add_argument("--timeout", type=float, help="Request timeout in seconds (env RAWORC_TIMEOUT)")
    ap.add_argument("--log-level", help="Log level name or number (env LOG_LEVEL)")
    ap.add_argument("--log-dir", help="Directory for rotating log files (env LOG_DIR)")
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        cfg = load_settings(
            RAWORC_API_URL=args.api_url,
            RAWORC_AUTH_TOKEN=args.auth_token,
            RAWORC_USERNAME=args.username,
            RAWORC_PASSWORD=args.password,
            RAWORC_DEFAULT_SPACE=args.default_space,
            RAWORC_TIMEOUT=args.timeout,
            LOG_LEVEL=args.log_level,
            LOG_DIR=args.log_dir,
        )
        setup_logging(cfg.LOG_LEVEL, cfg.LOG_DIR)
        client = RaworcClient.from_settings(cfg)
    except (ConfigError, OSError) as e:
        sys.stderr.write(f"[raworc-mcp] {e}\n")
        return 2

    with client:
        # Log in up front when only credentials are configured. A failure here
        # is not fatal: the first 401 retries the login.
        if cfg.has_credentials and not cfg.RAWORC_AUTH_TOKEN:
            logger.info("login", extra={"extra": {"user": cfg.RAWORC_USERNAME}})
            try:
                client.authenticate(cfg.RAWORC_USERNAME, cfg.RAWORC_PASSWORD)
            except RaworcError as e:
                logger.warning("login_failed", extra={"extra": {"err": str(e)}})
        logger.info("serving", extra={"extra": {"api_url": cfg.RAWORC_API_URL, "default_space": cfg.RAWORC_DEFAULT_SPACE}})
        serve(Dispatcher(client))
    return 0


if __name__ == "__main__":
    sys.exit(main())
