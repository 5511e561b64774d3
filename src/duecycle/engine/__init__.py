"""
Calculation engines — recurrence, amortization, processing state,
materialization, and budget utilization.

Submodules are imported directly (``from duecycle.engine.recurrence import ...``)
so that the data model can depend on :mod:`duecycle.engine.state` without
pulling in the store-backed services.
"""
