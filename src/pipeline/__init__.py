"""End-to-end template analysis."""

from pipeline.analyze import AnalysisOutcome, Issue, analyze

__all__ = ["AnalysisOutcome", "Issue", "analyze"]
