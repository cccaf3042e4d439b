"""
Worker module.
Contains the converter, the job processor, the dispatcher loop and the
worker service entry point.
"""

from export_worker.worker.converter import (
    ConversionError,
    Converter,
    SvgToPdfConverter,
    resolve_output_path,
)
from export_worker.worker.dispatcher import Dispatcher
from export_worker.worker.main import WorkerService, run
from export_worker.worker.processor import JobProcessor

__all__ = [
    "Converter",
    "ConversionError",
    "SvgToPdfConverter",
    "resolve_output_path",
    "JobProcessor",
    "Dispatcher",
    "WorkerService",
    "run",
]
