"""
Backend SecAgg — confidential cross-bank risk scoring.

Banks publish salted, homomorphically encrypted client risk scores to a shared
queue; a coordinator accumulates per-client sums and counts without decrypting
any score; each bank then reveals averages only for the clients it owns.
"""

__version__ = "0.1.0"
