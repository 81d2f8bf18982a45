"""Output publication and run result files."""

from .output_layout import OutputLayout
from .results_store import ResultsStore, unit_result_to_dict

__all__ = ["OutputLayout", "ResultsStore", "unit_result_to_dict"]
