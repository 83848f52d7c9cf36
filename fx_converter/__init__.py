"""
Currency conversion client library.
Normalizes exchange rate retrieval across third-party rate APIs and layers an
optional bulk-rate cache on top.
"""
