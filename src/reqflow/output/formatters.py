"""Adapt a ServiceResult to the requested output mode.

``--json`` emits the full result for machines, ``--quiet`` emits IDs
only, and the default is Rich-rendered text for humans.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from reqflow.output.renderers import render_quiet, render_result

if TYPE_CHECKING:
    from reqflow.services.result import ServiceResult


@dataclass(frozen=True)
class OutputSettings:
    json_output: bool = False
    quiet: bool = False
    verbose: bool = False


def format_result(result: ServiceResult, *, settings: OutputSettings | None = None) -> str:
    """Format a ServiceResult for display. JSON wins over quiet."""
    settings = settings or OutputSettings()
    if settings.json_output:
        return result.model_dump_json(indent=2)
    if settings.quiet:
        return render_quiet(result)
    return render_result(result, verbose=settings.verbose)
