"""
Orchestration package for the bulk template export.

Sequences listing → per-template export in batches → archive → report,
and wires the object graph from configuration.
"""

from .export_orchestrator import ExportOrchestrator
from .export_report import ExportReport
from .components import ExportComponents, build_components

__all__ = [
    'ExportOrchestrator',
    'ExportReport',
    'ExportComponents',
    'build_components'
]
