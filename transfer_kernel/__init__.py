"""
Transfer Kernel

Shared infrastructure for the account transfer pipeline:
- Typed, coded exceptions
- Structured JSON logging
- Named database engines (main and lookup stores)
- Injectable clock
"""

__version__ = "0.1.0"
