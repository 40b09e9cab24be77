"""warnings-gate - static-analysis issue aggregation and quality gates."""

__version__ = "0.1.0"
