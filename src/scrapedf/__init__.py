"""
scrapedf: Website to PDF Archiver

Crawls a website within a single host, renders every visited page to a PDF
document and bundles the documents into one ZIP archive for offline reading.
"""

__version__ = "1.0"
__author__ = "scrapedf Project"
__description__ = "Website to PDF Archiver"
