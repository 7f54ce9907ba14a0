"""
Monetary Bank - Source Package

A deposit ledger for chat-bot economies: users move cash into demand
and fixed-term deposits, which earn interest on a daily settlement run.

DESIGN PRINCIPLES:
1. Balances are derived from deposit records, never stored
2. Cash never moves without its matching record change
3. Fail visibly: operations return a typed error, not a guess
4. Every movement of value is auditable
5. Storage and the cash ledger are swappable
"""

__version__ = "1.0.0"
__author__ = "Monetary Bank Team"
