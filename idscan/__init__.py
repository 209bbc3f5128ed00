"""ID document scanning pipeline.

Checks photograph quality, enhances the image, recognizes text with
Tesseract, and extracts and validates identity fields, with one bounded
fallback for marginal captures.
"""
