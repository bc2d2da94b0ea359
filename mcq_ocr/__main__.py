"""
Module entry point for: python -m mcq_ocr

Allows running the pipeline directly as a module:
    python -m mcq_ocr process [image_path] [options]
    python -m mcq_ocr parse-text <text_file> [options]
"""

from .cli import cli


def main():
    cli()


if __name__ == "__main__":
    main()
