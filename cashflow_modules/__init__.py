"""Cash flow statement modules built on the cashflow kernel."""
