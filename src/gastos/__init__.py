"""
Câmara dos Deputados CEAP expense pipeline.

Scrapes deputies, mandate history and expense documents from the Chamber
open-data API into a DuckDB warehouse, enriches supplier CNPJs from BrasilAPI
and serves peer-relative spending analytics.
"""

__version__ = "0.1.0"
