"""
Wrapper script for batch evaluation.

Usage:
    python evaluate.py --results-dir data/batch-results --reference-dir . --out-md results.md
"""
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from note_eval.eval.evaluate import main

if __name__ == "__main__":
    sys.exit(main())
