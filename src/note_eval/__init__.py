"""
Evaluation of LLM-generated SOAP notes against reference consultations.

Provides tools for:
- Loading reference annotations and batch result files
- Scoring structure, coverage, grounding and text similarity per output
- Aggregating and ranking models
- Generating Markdown, JSON and CSV reports
"""

__version__ = "0.1.0"
