"""
Refresh pipeline.

Submodules:
  executor  — bounded, index-tagged thread-pool map with deadline/cancel
  returns   — first/last close return per instrument
  aggregate — sector rollup and ranking into a ResultSet
  refresh   — ResultCache and the RefreshController state machine
"""
