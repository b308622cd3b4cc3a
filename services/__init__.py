"""
Services Package

Pipeline stages that operate on normalized klines:
- merger: Join per-source series into per-date records
- validator: Flag data-quality anomalies and keep the clean days
- analyzer: Aggregate statistics over the clean days
- incremental: Reconcile a new batch with the persisted dataset
- pipeline: Wire fetch -> merge -> validate -> persist -> analyze together
- event_bus: Async pub/sub for pipeline progress events
"""
