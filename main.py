"""
Question Sheet OCR — One-Shot Entry Point
=========================================
Processes image.jpg next to this script and writes ocr_output.json beside it.

Usage:
    python main.py                     # image.jpg in this directory
    python main.py --image sheet.png   # Custom image
    python main.py --debug             # Debug logging
"""

import argparse
import logging
import sys

from mcq_ocr.engine import LOG_DATE_FORMAT, LOG_FORMAT, OcrPipeline, PipelineConfig
from mcq_ocr.errors import EXIT_NO_QUESTIONS, EXIT_OK, exit_code_for

logging.basicConfig(
    level=logging.INFO,
    format=LOG_FORMAT,
    datefmt=LOG_DATE_FORMAT,
)
logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="Question Sheet OCR")
    parser.add_argument("--image", default=None, help="Source image (default: image.jpg)")
    parser.add_argument("--output", default=None, help="Output JSON path")
    parser.add_argument("--debug", action="store_true", help="Debug logging")
    args = parser.parse_args()

    config = PipelineConfig(
        image_path=args.image,
        output_path=args.output,
        log_level="DEBUG" if args.debug else "INFO",
    )

    try:
        result = OcrPipeline(config).run()
    except FileNotFoundError as e:
        logger.critical(f"FATAL ERROR: {e}")
        return exit_code_for(e)
    except Exception as e:
        logger.error(f"Run failed: {e}")
        return exit_code_for(e)

    if not result.document.questions:
        logger.warning("No questions found in the recognized text")
        return EXIT_NO_QUESTIONS
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
