"""
Unit tests for infrastructure/diagnostics.py

Tests the Collector (dedup, cap, ordering) and the DiagnosticFormatter.
"""
import pytest

from core.schemas import Diagnostic, Location, RelatedNode
from infrastructure.diagnostics import (
    Collector,
    Color,
    DiagnosticError,
    DiagnosticFormatter,
    StoreError,
    render_error_code_docs,
)


def diag(code="E020", summary="Reference not found: x", file="", line=0, column=0, **kwargs):
    location = Location(file=file, line=line, column=column) if file or line else None
    return Diagnostic(code=code, summary=summary, location=location, **kwargs)


# =============================================================================
# COLLECTOR
# =============================================================================

class TestCollectorDedup:

    def test_same_position_and_code_is_deduplicated(self):
        collector = Collector()
        collector.add(diag(summary="one", file="a.yaml", line=3, column=5))
        collector.add(diag(summary="two", file="a.yaml", line=3, column=5))

        assert len(collector.errors()) == 1
        assert collector.count == 1
        assert collector.total_count == 2

    def test_different_column_is_kept(self):
        collector = Collector()
        collector.add(diag(file="a.yaml", line=3, column=5))
        collector.add(diag(file="a.yaml", line=3, column=6))
        assert len(collector.errors()) == 2

    def test_different_code_same_position_is_kept(self):
        collector = Collector()
        collector.add(diag(code="E020", file="a.yaml", line=3, column=5))
        collector.add(diag(code="E022", file="a.yaml", line=3, column=5))
        assert len(collector.errors()) == 2

    def test_locationless_uses_summary(self):
        collector = Collector()
        collector.add(diag(summary="a"))
        collector.add(diag(summary="a"))
        collector.add(diag(summary="b"))
        assert [d.summary for d in collector.errors()] == ["a", "b"]

    def test_file_only_location_uses_summary_and_file(self):
        collector = Collector()
        collector.add(diag(summary="a", file="x.yaml"))
        collector.add(diag(summary="a", file="y.yaml"))
        collector.add(diag(summary="a", file="x.yaml"))
        assert len(collector.errors()) == 2


class TestCollectorCap:

    def test_cap_limits_storage_but_counts_everything(self):
        collector = Collector(max_errors=2)
        for i in range(5):
            collector.add(diag(summary=f"s{i}"))

        assert len(collector.errors()) == 2
        assert collector.count == 5
        assert collector.truncated

    def test_not_truncated_at_exact_cap(self):
        collector = Collector(max_errors=2)
        collector.add(diag(summary="a"))
        collector.add(diag(summary="b"))
        assert not collector.truncated

    def test_unlimited_by_default(self):
        collector = Collector()
        for i in range(50):
            collector.add(diag(summary=f"s{i}"))
        assert len(collector) == 50
        assert not collector.truncated


def test_errors_sorted_located_first_then_insertion_order():
    collector = Collector()
    collector.add(diag(summary="no-loc-1"))
    collector.add(diag(summary="b-10", file="b.yaml", line=10, column=1))
    collector.add(diag(summary="a-5", file="a.yaml", line=5, column=2))
    collector.add(diag(summary="no-loc-2"))
    collector.add(diag(summary="a-2", file="a.yaml", line=2, column=9))

    assert [d.summary for d in collector.errors()] == ["a-2", "a-5", "b-10", "no-loc-1", "no-loc-2"]


def test_errors_sorted_by_file_then_line():
    collector = Collector()
    for file, line in [("b.yaml", 20), ("a.yaml", 30), ("b.yaml", 10), ("a.yaml", 5)]:
        collector.add(diag(summary=f"{file}:{line}", file=file, line=line))

    assert [d.summary for d in collector.errors()] == ["a.yaml:5", "a.yaml:30", "b.yaml:10", "b.yaml:20"]


def test_reset_and_add_batch():
    collector = Collector()
    collector.add_batch([diag(summary="a"), diag(summary="b"), diag(summary="a")])
    assert collector.has_errors()
    assert collector.total_count == 3

    collector.reset()

    assert not collector.has_errors()
    assert collector.count == 0
    assert collector.total_count == 0


# =============================================================================
# EXCEPTIONS
# =============================================================================

def test_diagnostic_error_carries_diagnostic():
    d = diag(code="E060", summary="Config file not found")
    with pytest.raises(DiagnosticError) as exc_info:
        raise StoreError(d)
    assert exc_info.value.code == "E060"
    assert exc_info.value.diagnostic is d
    assert "[E060]" in str(exc_info.value)


# =============================================================================
# FORMATTER
# =============================================================================

def test_format_plain():
    d = Diagnostic(
        code="E020",
        summary="Reference not found: systems/combt",
        detail="Referenced node 'systems/combt' does not exist",
        location=Location(file="sword.yaml", line=7, column=9),
        context=["refs.uses[0]"],
        suggestion="Did you mean 'systems/combat'?",
        related=[RelatedNode(node_id="items/sword", reason="source"), RelatedNode(node_id="x")],
    )

    text = DiagnosticFormatter().format(d)

    assert text == (
        "error[E020]: Reference not found: systems/combt\n"
        "  --> sword.yaml:7:9\n"
        "\n  Referenced node 'systems/combt' does not exist\n"
        "\n  Context:\n"
        "    • refs.uses[0]\n"
        "\n  Suggestion: Did you mean 'systems/combat'?\n"
        "\n  Related:\n"
        "    • items/sword (source)\n"
        "    • x\n"
    )


def test_format_color_uses_ansi():
    text = DiagnosticFormatter(color=True).format(diag())
    assert Color.RED in text
    assert Color.RESET in text
    assert Color.RED not in DiagnosticFormatter(color=False).format(diag())


def test_format_with_source_shows_excerpt_and_caret():
    source = "id: a\nkind: system\nstatus: aproved\ntitle: A\n"
    d = diag(code="E012", summary="Invalid status", file="a.yaml", line=3, column=9)

    text = DiagnosticFormatter(context_lines=1).format_with_source(d, source)

    assert "2 | kind: system" in text
    assert "3 | status: aproved" in text
    assert "4 | title: A" in text
    assert "1 | id: a" not in text
    caret_line = [line for line in text.splitlines() if line.strip().startswith("|")][0]
    assert caret_line.endswith("|" + " " * 9 + "^")


def test_format_with_source_without_line_falls_back():
    d = diag(file="a.yaml")
    formatter = DiagnosticFormatter()
    assert formatter.format_with_source(d, "id: a\n") == formatter.format(d)


def test_format_multiple():
    formatter = DiagnosticFormatter()
    text = formatter.format_multiple([diag(summary="one"), diag(summary="two")])

    assert text.startswith("2 error(s) found:\n\n")
    assert "-" * 60 in text
    assert text.index("one") < text.index("two")
    assert formatter.format_multiple([]) == ""


def test_error_code_docs_lists_every_category():
    docs = render_error_code_docs()
    assert docs.startswith("# Error Codes")
    assert "## Schema Errors (E001-E019)" in docs
    assert "## Contract Errors (E100-E119)" in docs
    assert "| E041 | Constraint violation |" in docs
