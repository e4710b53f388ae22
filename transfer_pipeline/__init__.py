"""
transfer_pipeline -- paginated extraction, cross-store enrichment, routing
and batched insert-if-absent upsert of account rows.

Submodules are imported explicitly (``transfer_pipeline.services.orchestrator``
and so on). Nothing is re-exported here: ``transfer_config.validator`` imports
the pure template and mapping modules and must not load the services.
"""
