"""Glacier — self-custodial Bitcoin time locks on a single HD seed."""

__version__ = "0.1.0"
