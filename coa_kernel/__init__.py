"""
COA Kernel - Combination Rule Evaluation

Chart-of-accounts reference data and combination rules:
- Segments, segment codes and validity windows
- Hierarchies over segment codes
- Ordered Include/Exclude combination rules between two segments
- Immutable snapshots consumed by the pure evaluation engines
"""

__version__ = "0.1.0"
