"""ERP export import engine.

Parses delimited ERP exports, works out which destination store and which
canonical fields the columns belong to, normalizes values and loads the rows
in batches with per-batch failure isolation.
"""

__version__ = "0.1.0"
