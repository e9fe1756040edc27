"""
Bilanz Kernel

Persistence and infrastructure layer for statutory statement generation:
- Company, chart of accounts, fiscal years and journal postings
- Posted-record immutability
- Read-only ledger and snapshot selectors
- Structured logging and typed errors
"""

__version__ = "0.1.0"
