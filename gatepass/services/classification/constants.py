"""Identifier shapes that mark a party as non-SLT (external)."""

import re

# Identifiers issued to external parties by the request form
NON_SLT_PREFIX = "NSL"

# Bare 4-6 digit numbers (e.g. 0005, 010086) are legacy external identifiers.
# This also matches any genuinely short internal service number; see DESIGN.md.
NON_SLT_NUMERIC_PATTERN = re.compile(r"^\d{4,6}$", re.ASCII)
