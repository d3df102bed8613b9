from __future__ import annotations

import re
from typing import Dict, Iterable, List, Pattern


# Evidence in a reference narrative for each vital sign a note may report
# (BP: 120/80, HR 80, pulse 72, temp 37.5°, RR 16, weight 70kg)
VITAL_SIGN_PATTERNS: Dict[str, List[Pattern]] = {
    "bp": [
        re.compile(r"bp[:\s]", re.IGNORECASE),
        re.compile(r"\d+/\d+"),
        re.compile(r"blood\s+pressure", re.IGNORECASE),
    ],
    "hr": [
        re.compile(r"hr[:\s]", re.IGNORECASE),
        re.compile(r"pulse", re.IGNORECASE),
        re.compile(r"heart\s+rate", re.IGNORECASE),
    ],
    "temp": [
        re.compile(r"temp", re.IGNORECASE),
        re.compile(r"\d+\.\d+°"),
    ],
    "rr": [
        re.compile(r"\brr[:\s]", re.IGNORECASE),
        re.compile(r"resp(?:iratory)?\s+rate", re.IGNORECASE),
    ],
    "weight": [
        re.compile(r"weight", re.IGNORECASE),
        re.compile(r"\d+\s*kg\b", re.IGNORECASE),
    ],
}

# Lab work or imaging mentioned in a reference narrative
LAB_IMAGING_PATTERNS: List[Pattern] = [
    re.compile(r"lab", re.IGNORECASE),
    re.compile(r"blood test", re.IGNORECASE),
    re.compile(r"urine test", re.IGNORECASE),
    re.compile(r"xray", re.IGNORECASE),
    re.compile(r"x-ray", re.IGNORECASE),
    re.compile(r"ct\s", re.IGNORECASE),
    re.compile(r"mri", re.IGNORECASE),
    re.compile(r"ultrasound", re.IGNORECASE),
]

# Clinician impression line ("Imp: Migraine")
IMPRESSION_RE = re.compile(r"\bimp[:\s]+([^\n]+)", re.IGNORECASE)


def any_match(patterns: Iterable[Pattern], text: str) -> bool:
    return any(p.search(text or "") for p in patterns)
