"""
Validator Package - Fee receipt validation against a published Google Sheet

Modules:
- extract: sheet fetch, header normalization, quote-aware CSV parsing
- models: typed records, verdicts, outcomes and run state
- classify: Gemini proof-of-payment classifier
- processor: per-row image fetch + classification
- pipeline: sequential orchestrator with first-row short-circuit
- aggregate: verdict tally, clipboard and report projections
- load: Excel/CSV report generation
- schema: TypedDict definitions
"""
from .pipeline import ValidationPipeline, RunEvent
from .extract import load_records
from .models import PaymentRecord, RecordOutcome, ValidationVerdict, PipelineState

__all__ = ['ValidationPipeline', 'RunEvent', 'load_records', 'PaymentRecord', 'RecordOutcome',
           'ValidationVerdict', 'PipelineState']
