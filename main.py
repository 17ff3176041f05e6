"""
Face Detection Function Entrypoint.

Responsibility:
    Read one request body from stdin (or a file), load configuration,
    run the detection handler, and write the response body to stdout.
    This matches how a function runtime's watchdog invokes a process per
    request: body on stdin, query string in the Http_Query variable.

Usage:
    base64 -w0 face.jpg | python main.py > faces.json
    python main.py --body-file face.jpg --output-mode image > annotated.jpg
    echo "https://example.com/face.jpg" | input_mode=url python main.py
    python main.py --config my_config.yaml --body-file face.png

This module is the executable entry point. It should not be imported
by other modules.
"""

import argparse
import logging
import sys

from face_detector.config import load_config
from face_detector.handler import handle

logger = logging.getLogger("main")


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Cascade face detection — single request handler",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--body-file",
        type=str,
        help="Read the request body from this file instead of stdin.",
    )
    parser.add_argument(
        "--config",
        type=str,
        help="Path to YAML configuration file.",
    )
    parser.add_argument(
        "--input-mode",
        type=str,
        choices=["inline", "url"],
        help="How to interpret the body. Overrides config.",
    )
    parser.add_argument(
        "--output-mode",
        type=str,
        choices=["json", "image", "json_image"],
        help="Response shape. Overrides config and the query string.",
    )
    parser.add_argument(
        "--marker",
        type=str,
        choices=["rectangle", "circle"],
        help="Marker drawn around faces in image output. Overrides config.",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (logs go to stderr).",
    )

    return parser.parse_args()


def main() -> int:
    """Handle a single request."""
    args = parse_args()

    # stdout carries the response, so logs go to stderr
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )

    # 1. Load Configuration (CLI args > ENV > YAML > Defaults)
    try:
        config = load_config(args.config)

        # Apply CLI overrides
        # We must use object.__setattr__ because the dataclass is frozen
        if args.input_mode is not None:
            object.__setattr__(config.input, "mode", args.input_mode)

        if args.output_mode is not None:
            object.__setattr__(config.output, "mode", args.output_mode)

        if args.marker is not None:
            object.__setattr__(config.visualization, "marker", args.marker)

    except Exception as e:
        logger.error("Configuration error: %s", e)
        return 1

    # 2. Read the request body
    try:
        if args.body_file is not None:
            with open(args.body_file, "rb") as f:
                body = f.read()
        else:
            body = sys.stdin.buffer.read()
    except OSError as e:
        logger.error("Unable to read request body: %s", e)
        return 1

    # 3. Handle and respond
    response = handle(body, config=config)

    sys.stdout.buffer.write(response.body)
    sys.stdout.buffer.flush()

    return 0 if response.ok else 1


if __name__ == "__main__":
    sys.exit(main())
