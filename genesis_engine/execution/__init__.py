"""Sequential transaction execution over an external virtual machine.

Implements:
  - The backend interface and loader for the virtual machine
  - Strictly ordered execution with commit-between-transactions
  - Consolidation of the batch into one state delta
  - Classification of outcomes into diagnostics
"""
