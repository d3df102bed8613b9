"""
Evaluation framework for structured-note extraction.

Provides tools for:
- Computing per-output metrics against a reference note
- Aggregating records by model, image and prompt
- Ranking models with a composite score
- Generating readable reports
"""
