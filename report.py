"""
Wrapper script for report generation.

Usage:
    python report.py --data data/evaluation-results.json --out results.md
"""
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from note_eval.eval.report import main

if __name__ == "__main__":
    sys.exit(main())
