# ========================
# src/ev_adoption/__init__.py
# ========================

"""
EV Adoption Pipeline

Turns national vehicle registration extracts and global EV sales into EV
share tables, growth rates, rankings and saturation projections.
"""

__version__ = "1.0.0"
