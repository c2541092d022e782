"""
Cashflow Kernel

Read-side persistence and domain core for the cash flow statement engine:
- Reporting periods, facilities, projects and execution entries
- Read-only selectors returning frozen DTOs
- Period, execution and manual-override readers with query deadlines
- Structured logging and typed exceptions
"""

__version__ = "0.1.0"
