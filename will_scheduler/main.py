import asyncio
import logging
import os
from pathlib import Path

from dotenv import load_dotenv

# Explicitly load .env files at startup
# Load order (later files override earlier):
# 1. ~/.env (global user keys)
# 2. project .env (project defaults)
# 3. project .env.local (local overrides)
project_root = Path(__file__).parent.parent
home_env = Path.home() / ".env"
env_file = project_root / ".env"
env_local = project_root / ".env.local"

if home_env.exists():
    load_dotenv(home_env, override=False)

if env_file.exists():
    load_dotenv(env_file, override=True)

if env_local.exists():
    load_dotenv(env_local, override=True)

from .lifecycle import serve  # noqa: E402
from .utils.logging import setup_logging  # noqa: E402
from .version import __version__  # noqa: E402

logger = logging.getLogger(__name__)


def run() -> None:
    """Console entry point: `will-scheduler` or `python -m will_scheduler`."""
    setup_logging(
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_to_file=os.getenv("LOG_TO_FILE", "true").lower() in ("1", "true", "yes"),
    )
    logger.info(f"Will scheduler v{__version__}")
    try:
        asyncio.run(serve())
    except KeyboardInterrupt:
        logger.info("Interrupted")


if __name__ == "__main__":
    run()
