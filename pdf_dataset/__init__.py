"""Myanmar PDF → row dataset extraction.

Native text layer first, Tesseract OCR fallback for Myanmar script, rows
per page for JSON export.
"""
