"""Core logic layer.

Catalog, filter engine and weight ledger, plus the ``Configurator`` context
object that the Streamlit page (or any other caller) owns and drives.
"""

from .configurator import CommandResult, Configurator, ExportResult

__all__ = ["CommandResult", "Configurator", "ExportResult"]
