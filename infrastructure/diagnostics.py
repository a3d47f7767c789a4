"""
KEYSTONE DIAGNOSTICS - Collecting and Rendering Problems

Every user-facing failure in Keystone is a Diagnostic (core.schemas): a
stable code, a summary, optional detail, location, context, suggestion and
related nodes. This module provides:

- DiagnosticError: Exception wrapper for fail-fast paths (stores, migrations)
- Collector: Accumulates diagnostics with de-duplication, a storage cap
  and a stable sort order
- DiagnosticFormatter: Multi-line rendering, optionally with ANSI colour
  and a source excerpt
- render_error_code_docs: Markdown reference of all registered codes

Usage:
    collector = Collector(max_errors=100)
    collector.add(Diagnostic(code="E020", summary="Reference not found: x"))

    formatter = DiagnosticFormatter(color=False)
    print(formatter.format_multiple(collector.errors()))
"""
import logging
from typing import Dict, Iterable, List, Optional, Set

from core.ontology import ErrorCategory, error_codes_by_category
from core.schemas import Diagnostic

logger = logging.getLogger(__name__)


# =============================================================================
# EXCEPTIONS
# =============================================================================

class DiagnosticError(Exception):
    """An exception that carries a structured Diagnostic."""
    def __init__(self, diagnostic: Diagnostic):
        self.diagnostic = diagnostic
        super().__init__(str(diagnostic))

    @property
    def code(self) -> str:
        return self.diagnostic.code


class StoreError(DiagnosticError):
    """Raised by node, config and audit stores."""
    pass


class MigrationError(DiagnosticError):
    """Raised when a migration cannot be registered or run."""
    pass


class BackupError(DiagnosticError):
    """Raised when a backup cannot be created or restored."""
    pass


# =============================================================================
# COLLECTOR
# =============================================================================

def _dedup_key(diag: Diagnostic) -> str:
    loc = diag.location
    if loc is None or loc.is_zero:
        return f"{diag.code}:{diag.summary}"
    if loc.line > 0 and loc.column > 0:
        return f"{diag.code}:{loc.file}:{loc.line}:{loc.column}"
    if loc.line > 0:
        return f"{diag.code}:{loc.file}:{loc.line}"
    return f"{diag.code}:{diag.summary}:{loc.file}"


def _sort_key(diag: Diagnostic):
    loc = diag.location
    if loc is None or loc.is_zero:
        return (1, "", 0, 0)
    return (0, loc.file, loc.line, loc.column)


class Collector:
    """
    Accumulates diagnostics from many validators.

    De-duplication: two diagnostics are the same if they share a code and a
    position (file, line and column when known). Without a line, the summary
    takes part in the key; without any location, code and summary alone do.

    Cap: with max_errors > 0 at most that many distinct diagnostics are
    stored; later ones are still counted, and `truncated` becomes True.
    """

    def __init__(self, max_errors: int = 0):
        self.max_errors = max_errors
        self._errors: List[Diagnostic] = []
        self._seen: Set[str] = set()
        self._total = 0

    def add(self, diag: Diagnostic) -> None:
        self._total += 1
        key = _dedup_key(diag)
        if key in self._seen:
            return
        self._seen.add(key)
        if self.max_errors == 0 or len(self._errors) < self.max_errors:
            self._errors.append(diag)
        elif len(self._seen) == self.max_errors + 1:
            logger.debug("Diagnostic cap of %d reached; further diagnostics are counted only", self.max_errors)

    def add_batch(self, diags: Iterable[Diagnostic]) -> None:
        for diag in diags:
            self.add(diag)

    def errors(self) -> List[Diagnostic]:
        """
        Stored diagnostics, located ones first by (file, line, column),
        then locationless ones in the order they were added.
        """
        return sorted(self._errors, key=_sort_key)

    def has_errors(self) -> bool:
        return bool(self._errors)

    @property
    def count(self) -> int:
        """Distinct diagnostics seen, including ones dropped by the cap."""
        return len(self._seen)

    @property
    def total_count(self) -> int:
        """Every add, duplicates included."""
        return self._total

    @property
    def truncated(self) -> bool:
        return self.max_errors > 0 and len(self._seen) > self.max_errors

    def reset(self) -> None:
        self._errors = []
        self._seen = set()
        self._total = 0

    def __len__(self) -> int:
        return len(self._errors)

    def __repr__(self) -> str:
        return f"Collector(stored={len(self._errors)}, seen={self.count}, max={self.max_errors})"


# =============================================================================
# FORMATTER
# =============================================================================

class Color:
    """ANSI escape sequences for terminal output."""
    RED = "\033[91m"
    YELLOW = "\033[93m"
    BLUE = "\033[94m"
    CYAN = "\033[96m"
    BOLD = "\033[1m"
    RESET = "\033[0m"


SEPARATOR = "-" * 60


class DiagnosticFormatter:
    """
    Renders diagnostics for humans.

    Output of format():

        error[E020]: Reference not found: systems/combt
          --> nodes/items/sword.yaml:7:9

          Referenced node 'systems/combt' does not exist

          Suggestion: Did you mean 'systems/combat'?
    """

    def __init__(self, color: bool = False, context_lines: int = 2):
        self.color = color
        self.context_lines = context_lines

    def _paint(self, text: str, *codes: str) -> str:
        if not self.color:
            return text
        return "".join(codes) + text + Color.RESET

    def format(self, diag: Diagnostic) -> str:
        out = [self._paint(f"error[{diag.code}]", Color.BOLD, Color.RED) + f": {diag.summary}\n"]
        if diag.location is not None and not diag.location.is_zero:
            out.append(self._paint("  --> ", Color.BLUE) + f"{diag.location}\n")
        if diag.detail:
            out.append(f"\n  {diag.detail}\n")
        if diag.context:
            out.append("\n  Context:\n")
            for item in diag.context:
                out.append(f"    • {item}\n")
        if diag.suggestion:
            out.append("\n  " + self._paint("Suggestion:", Color.CYAN) + f" {diag.suggestion}\n")
        if diag.related:
            out.append("\n  Related:\n")
            for rel in diag.related:
                if rel.reason:
                    out.append(f"    • {rel.node_id} ({rel.reason})\n")
                else:
                    out.append(f"    • {rel.node_id}\n")
        return "".join(out)

    def format_with_source(self, diag: Diagnostic, source: str) -> str:
        """format() plus an excerpt of the source around the location."""
        from infrastructure.location import extract_context, highlight_column

        text = self.format(diag)
        loc = diag.location
        if loc is None or loc.line <= 0 or not source:
            return text

        lines = extract_context(source, loc, self.context_lines, self.context_lines)
        if not lines:
            return text
        width = len(str(lines[-1][0]))
        out = [text, "\n"]
        for number, line in lines:
            gutter = self._paint(f"{number:>{width}} |", Color.BLUE)
            out.append(f"  {gutter} {line}\n")
            if number == loc.line and loc.column > 0:
                marker = self._paint(highlight_column(loc.column), Color.RED)
                out.append(f"  {' ' * width} {self._paint('|', Color.BLUE)} {marker}\n")
        return "".join(out)

    def format_multiple(self, diags: List[Diagnostic], sources: Optional[Dict[str, str]] = None) -> str:
        """
        Render a list of diagnostics separated by rules.

        Args:
            sources: Optional file path -> content map for source excerpts
        """
        if not diags:
            return ""
        out = [f"{len(diags)} error(s) found:\n\n"]
        for i, diag in enumerate(diags):
            if i > 0:
                out.append(f"\n{SEPARATOR}\n\n")
            source = None
            if sources and diag.location is not None:
                source = sources.get(diag.location.file)
            if source:
                out.append(self.format_with_source(diag, source))
            else:
                out.append(self.format(diag))
        return "".join(out)


# =============================================================================
# ERROR CODE DOCUMENTATION
# =============================================================================

_CATEGORY_TITLES = {
    ErrorCategory.SCHEMA: "Schema Errors (E001-E019)",
    ErrorCategory.REFS: "Reference Errors (E020-E039)",
    ErrorCategory.VALIDATION: "Validation Errors (E040-E059)",
    ErrorCategory.IO: "I/O Errors (E060-E079)",
    ErrorCategory.GRAPH: "Graph Errors (E080-E099)",
    ErrorCategory.CONTRACT: "Contract Errors (E100-E119)",
}


def render_error_code_docs() -> str:
    """Markdown reference of every registered diagnostic code."""
    out = ["# Error Codes\n"]
    for category in ErrorCategory:
        codes = error_codes_by_category(category.value)
        if not codes:
            continue
        out.append(f"\n## {_CATEGORY_TITLES[category]}\n\n")
        out.append("| Code | Message |\n")
        out.append("|------|---------|\n")
        for ec in codes:
            out.append(f"| {ec.code} | {ec.message} |\n")
    return "".join(out)
