"""UI layer -- Rich dashboard and output formatters."""

from .dashboard import (
    ProgressDisplay,
    console,
    create_sparkline,
    print_final_results,
    print_header,
    print_report,
)
from .output import create_result_json, format_text_result, save_json

__all__ = [
    "ProgressDisplay",
    "console",
    "create_result_json",
    "create_sparkline",
    "format_text_result",
    "print_final_results",
    "print_header",
    "print_report",
    "save_json",
]
