from .normalizer import InputNormalizer
from .intent import Intent, IntentClassifier, is_creation_intent, to_draft_type
from .mode_detector import ModeDetector
from .prompts import PromptAssembler, SystemPromptService
from .connector import DeepSeekConnector, ConnectorProvider, LlmConnector, LlmResponse, TokenUsage
from .circuit_breaker import CircuitBreaker, CircuitState, get_circuit_breaker
from .gateway import LlmGateway, GatewayMetrics, MetricsSnapshot, get_llm_gateway
from .response_parser import AIResponseParser
from .draft_extractor import DraftExtractor, ExtractedDraft, ExtractionResult

__all__ = [
    "InputNormalizer",
    "Intent",
    "IntentClassifier",
    "is_creation_intent",
    "to_draft_type",
    "ModeDetector",
    "PromptAssembler",
    "SystemPromptService",
    "DeepSeekConnector",
    "ConnectorProvider",
    "LlmConnector",
    "LlmResponse",
    "TokenUsage",
    "CircuitBreaker",
    "CircuitState",
    "get_circuit_breaker",
    "LlmGateway",
    "GatewayMetrics",
    "MetricsSnapshot",
    "get_llm_gateway",
    "AIResponseParser",
    "DraftExtractor",
    "ExtractedDraft",
    "ExtractionResult",
]
