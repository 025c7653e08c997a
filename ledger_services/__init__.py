"""
ledger_services -- Orchestration over the kernel, engines and modules.

Responsibility:
    Role/permission authority (``rbac_authority``) and period close
    orchestration (``period_close_orchestrator``).

Architecture position:
    Services -- the outermost layer.

    Dependency direction (enforced by tests/architecture/test_import_boundaries.py):
        ledger_services/ -> ledger_modules/, ledger_engines/, ledger_kernel/  (allowed)
        ledger_kernel/   -> ledger_services/                                 (FORBIDDEN)
        ledger_engines/  -> ledger_services/                                 (FORBIDDEN)

    ledger_modules imports ``ledger_services.rbac_authority`` directly, so
    this package init stays import-free; import submodules explicitly.
"""
