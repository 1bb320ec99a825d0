"""
Command-line interface for portfolio-sync.
"""
import sys
import argparse
import logging
import asyncio
from typing import List, Optional

from portfolio_sync.config import Config, ConfigError
from portfolio_sync.core.processor import CONTENT_FORMATS, run_sync
from portfolio_sync.fetchers.notion import NotionAPIError

logger = logging.getLogger(__name__)

PIPELINES = ('articles', 'projects')
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(level: str = 'INFO', log_file: Optional[str] = None):
    """
    Configure root logging for a run.

    Args:
        level: Log level name
        log_file: Also write the log to this file when set
    """
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )


def parse_args(argv: Optional[List[str]] = None):
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(description="Sync published Notion articles and projects into static JSON")
    parser.add_argument("pipeline", choices=PIPELINES + ('all',), help="Which snapshot to rebuild")
    parser.add_argument("--config", help="Path to a YAML or JSON config file")
    parser.add_argument("--root", default=".", help="Site root that data/ and assets/ live under")
    parser.add_argument("--format", dest="content_format", choices=CONTENT_FORMATS,
                        help="Body representation: rendered HTML or structured blocks")
    parser.add_argument("--concurrent", action="store_true", default=None,
                        help="Process records concurrently")
    parser.add_argument("--log-level", help="Log level (default from config, INFO)")
    return parser.parse_args(argv)


async def async_main(args, config: Config) -> int:
    """
    Run the selected sync jobs.

    A fatal error stops only its own job; the remaining jobs still run.

    Returns:
        Process exit code, 1 if any job failed
    """
    names = PIPELINES if args.pipeline == 'all' else (args.pipeline,)
    failed = []
    for name in names:
        try:
            path = await run_sync(
                name,
                config,
                root=args.root,
                content_format=args.content_format,
                concurrent=args.concurrent,
            )
        except ConfigError as e:
            logger.error(f"Configuration error in {name}: {e}")
            failed.append(name)
            continue
        except NotionAPIError as e:
            logger.exception(f"Fatal error querying Notion for {name}: {e}")
            failed.append(name)
            continue
        except Exception as e:
            logger.exception(f"An error occurred in {name}: {e}")
            failed.append(name)
            continue
        logger.info(f"Finished {name}: {path}")

    if failed:
        logger.error(f"Failed jobs: {', '.join(failed)}")
        return 1
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """
    Entry point for the command-line script.
    """
    args = parse_args(argv)
    try:
        config = Config(args.config)
    except ConfigError as e:
        setup_logging()
        logger.error(f"Invalid configuration: {e}")
        return 1

    setup_logging(args.log_level or config.get('logging.level', 'INFO'), config.get('logging.file'))

    try:
        return asyncio.run(async_main(args, config))
    except KeyboardInterrupt:
        logger.info("Process interrupted by user")
        return 1
    except Exception as e:
        logger.exception(f"An error occurred: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
