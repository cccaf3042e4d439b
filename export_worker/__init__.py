"""
PDF Export Worker

A Redis-backed work-queue consumer that turns SVG documents into vector PDFs
with bounded concurrency, per-job status tracking for pollers, and bounded
retries.
"""

__version__ = "1.0.0"
