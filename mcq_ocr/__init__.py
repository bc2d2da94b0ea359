"""
Question Sheet OCR
==================
One-shot OCR of a scanned two-column multiple-choice question sheet.

Architecture:
    - Image Processor: Splits the sheet 50/50 and enhances each column
    - Recognizer: Runs Tesseract on each enhanced column
    - Normalizer: Ordered rule table fixing systematic OCR misreads
    - State Machine: Detects question numbers, bodies and a-d options
    - Validator: Deduplicates by question number and reports gaps
    - Writer: Produces the ocr_output.json document

Version: 1.0.0
"""

__version__ = "1.0.0"
