"""Optional OpenTelemetry tracing for orchestration runs.

The orchestrator always asks ``get_tracer()`` for a tracer and opens two kinds
of spans:

- ``conductor.process_request``: one per run (session id, final state,
  iteration count);
- ``conductor.tool_call``: one per loop iteration (tool name, outcome code,
  whether the guardrail blocked it).

With ``opentelemetry-sdk`` installed (``pip install "agent-conductor[otel]"``)
and ``telemetry.enabled`` set in config, those are real spans sent to the
configured exporter.  Otherwise ``get_tracer()`` hands out a no-op tracer and
the orchestrator behaves identically.

Config block::

    "telemetry": {
        "enabled": true,
        "exporter": "console",        # "none" | "console" | "otlp"
        "service_name": "my-agent",
        "otlp_endpoint": ""           # required when exporter="otlp"
    }
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from agent_conductor.config import ConductorConfig, TelemetryConfig

logger = logging.getLogger(__name__)


class _NoOpSpan:
    """Span stand-in: accepts every call, records nothing."""

    def set_attribute(self, key: str, value: Any) -> None:  # noqa: ARG002
        pass

    def record_exception(self, exc: BaseException) -> None:  # noqa: ARG002
        pass

    def set_status(self, *args: Any, **kwargs: Any) -> None:
        pass

    def __enter__(self) -> "_NoOpSpan":
        return self

    def __exit__(self, *args: Any) -> None:
        pass


class _NoOpTracer:
    def start_as_current_span(self, name: str, **kwargs: Any) -> _NoOpSpan:  # noqa: ARG002
        return _NoOpSpan()


_NOOP_TRACER = _NoOpTracer()

_tracer: Any = None      # opentelemetry Tracer once set up
_provider: Any = None    # SDK TracerProvider owning the span processors
_otel_available: bool = False

try:
    import opentelemetry  # noqa: F401
    _otel_available = True
except ImportError:
    pass


def _span_processor(tel_cfg: "TelemetryConfig") -> Optional[Any]:
    """Batch processor for the configured exporter, or None when nothing should be exported."""
    exporter_name = tel_cfg.exporter
    if exporter_name == "none":
        return None

    from opentelemetry.sdk.trace.export import BatchSpanProcessor

    if exporter_name == "console":
        from opentelemetry.sdk.trace.export import ConsoleSpanExporter
        logger.info("Telemetry: console exporter (service=%s)", tel_cfg.service_name)
        return BatchSpanProcessor(ConsoleSpanExporter())

    if exporter_name == "otlp":
        if not tel_cfg.otlp_endpoint:
            logger.warning("Telemetry exporter='otlp' but otlp_endpoint is not set; traces dropped")
            return None
        try:
            from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
        except ImportError:
            logger.warning(
                "OTLP exporter requested but 'opentelemetry-exporter-otlp-proto-grpc' is not installed. "
                "Install with: pip install opentelemetry-exporter-otlp-proto-grpc"
            )
            return None
        logger.info(
            "Telemetry: OTLP exporter (endpoint=%s service=%s)",
            tel_cfg.otlp_endpoint, tel_cfg.service_name,
        )
        return BatchSpanProcessor(OTLPSpanExporter(endpoint=tel_cfg.otlp_endpoint))

    logger.warning("Unknown telemetry exporter %r; no spans will be exported", exporter_name)
    return None


def setup_telemetry(config: "ConductorConfig") -> None:
    """Install a tracer provider according to ``config.telemetry``.

    Only the first successful call has an effect.  Disabled telemetry or a
    missing ``opentelemetry-sdk`` leaves the no-op tracer in place.
    """
    global _tracer, _provider  # noqa: PLW0603
    if _tracer is not None:
        return

    tel_cfg = config.telemetry
    if tel_cfg is None or not tel_cfg.enabled:
        logger.debug("Telemetry disabled or not configured; using no-op tracer")
        return
    if not _otel_available:
        logger.warning(
            "Telemetry is enabled in config but opentelemetry-sdk is not installed. "
            "Install with: pip install 'agent-conductor[otel]'"
        )
        return

    from opentelemetry import trace
    from opentelemetry.sdk.resources import SERVICE_NAME, Resource
    from opentelemetry.sdk.trace import TracerProvider

    provider = TracerProvider(resource=Resource(attributes={SERVICE_NAME: tel_cfg.service_name}))
    processor = _span_processor(tel_cfg)
    if processor is not None:
        provider.add_span_processor(processor)

    trace.set_tracer_provider(provider)
    _provider = provider
    # Tracer comes from our provider; the global one may already be fixed by the host process.
    _tracer = provider.get_tracer("agent_conductor")
    logger.debug("Telemetry initialised: exporter=%s service=%s", tel_cfg.exporter, tel_cfg.service_name)


def get_tracer() -> Any:
    """The active tracer: a real OTEL tracer after setup, the no-op tracer otherwise."""
    return _tracer if _tracer is not None else _NOOP_TRACER


def shutdown_telemetry() -> None:
    """Flush pending spans and stop exporters.  Safe to call when telemetry never started."""
    global _provider  # noqa: PLW0603
    if _provider is None:
        return
    _provider.shutdown()
    _provider = None


def reset_for_testing() -> None:
    """Reset module state for use in tests. Not for production use."""
    global _tracer, _provider  # noqa: PLW0603
    _tracer = None
    _provider = None
    if _otel_available:
        from opentelemetry import trace
        trace.set_tracer_provider(trace.NoOpTracerProvider())
