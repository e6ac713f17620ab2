"""
Command-line entry point for deflicker.
"""

import logging
import sys
from typing import Iterable, Optional

from .config import build_config, parse_args, save_config
from .errors import DeflickerError
from .pipeline import process_sequence

LOGGER = logging.getLogger("deflicker")


def main(argv: Optional[Iterable[str]] = None):
    try:
        args = parse_args(argv)
        if args.save_config:
            save_config(args.save_config, args)
            print(f"[CONFIG] Saved to: {args.save_config}")
            return
        logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")
        config = build_config(args)
        if config.debug:
            logging.getLogger().setLevel(logging.DEBUG)
        result = process_sequence(config)
    except DeflickerError as e:
        LOGGER.error("%s", e)
        sys.exit(1)

    LOGGER.info("Job completed in %.0f seconds.", result.elapsed)
    LOGGER.info("%d files have been processed", len(result.frames))
    LOGGER.info("Output: %s", result.output_dir)
