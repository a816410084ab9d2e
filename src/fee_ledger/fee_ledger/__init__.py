"""Fee Ledger package.

This package is organized by feature modules (components, batch structures,
student structures, installments, receipts, ...) with a thin Flask controller
layer and service/repository layers underneath.
"""
