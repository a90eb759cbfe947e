"""Client-side core of the SLT gate-pass approval workflow."""

__version__ = "0.1.0"
