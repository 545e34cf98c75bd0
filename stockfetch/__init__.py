"""Browser-driven enrichment of a stock catalogue from financial and ESG data providers."""

__version__ = "0.1.0"
