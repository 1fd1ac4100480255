from loguru import logger
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry import trace as trace_api
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor


def setup_telemetry(app, endpoint: str, service_name: str = "diet-agent-api"):
    """Export request spans over OTLP/HTTP to `endpoint` (e.g. http://127.0.0.1:6006/v1/traces)."""
    resource = Resource(attributes={
        "service.name": service_name,
    })

    trace_provider = TracerProvider(resource=resource)
    exporter = OTLPSpanExporter(endpoint=endpoint)

    trace_provider.add_span_processor(BatchSpanProcessor(exporter))
    trace_api.set_tracer_provider(trace_provider)

    # Instrument the FastAPI app
    FastAPIInstrumentor().instrument_app(app, tracer_provider=trace_provider)

    logger.info("Tracing enabled, exporting to {}", endpoint)
    return trace_provider
