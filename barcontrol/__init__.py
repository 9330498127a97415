"""
BarControl - Source Package

Tracks what you order during a night out against a budget you set
yourself, then closes the tab by splitting it among the table.

DESIGN PRINCIPLES:
1. Bad input is rejected before anything changes
2. Storage problems never crash the app
3. Money is Decimal, never float, until it hits the wire
4. Every user action is auditable
5. Storage and camera backends are swappable
"""

__version__ = "1.0.0"
__author__ = "BarControl Team"
