"""OpenTelemetry implementation of ``ITimeSpanManager``.

Spans nest: ``start_span`` opens a child of the innermost open span and
``stop_span`` ends the innermost one. One manager per invocation.
"""
from __future__ import annotations

from typing import List, Optional

from opentelemetry import trace
from opentelemetry.trace import Span, Tracer


class OpenTelemetryTimeSpanManager:
    def __init__(self, tracer: Optional[Tracer] = None):
        self._tracer = tracer or trace.get_tracer(__name__)
        self._spans: List[Span] = []

    def start_span(self, name: str) -> None:
        parent = trace.set_span_in_context(self._spans[-1]) if self._spans else None
        self._spans.append(self._tracer.start_span(name, context=parent))

    def add_event(self, name: str) -> None:
        if not self._spans:
            raise RuntimeError("no active span to annotate")
        self._spans[-1].add_event(name)

    def is_active(self) -> bool:
        return bool(self._spans)

    def stop_span(self) -> None:
        if not self._spans:
            raise RuntimeError("no active span to stop")
        self._spans.pop().end()
