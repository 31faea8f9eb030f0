"""Import services: reconciliation, pricing, orchestration, reporting."""
