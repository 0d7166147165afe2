"""
Outcome tracking and the parameter feedback loop.

Modules:
    accuracy — accuracy formula, timeframe buckets, factor attribution,
               LearningMetrics aggregation.
    learning — LearningEngine: records/resolves predictions and applies
               bounded, idempotent parameter updates.
"""
