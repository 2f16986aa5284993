"""
Domain models.

Modules:
  instrument — ``Instrument`` and ``PriceBar`` (collaborator outputs)
  results    — ``ReturnRecord``, ``CategorySummary`` and ``ResultSet``
"""
