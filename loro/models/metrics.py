from pydantic import BaseModel

class LatencyStats(BaseModel):
    avg: float = 0.0
    min: float = 0.0
    max: float = 0.0
    p50: float = 0.0
    p95: float = 0.0

class ModeStats(BaseModel):
    total_requests: int
    first_response_latency: LatencyStats
    total_response_latency: LatencyStats
    quick_response_latency: LatencyStats
    large_model_latency: LatencyStats

class Comparison(BaseModel):
    quick_mode_requests: int
    direct_mode_requests: int
    # Seconds saved on time-to-first-chunk by the quick mode (direct avg − quick avg)
    avg_first_response_improvement: float

class MetricsSnapshot(BaseModel):
    quick_response_mode: ModeStats
    direct_mode: ModeStats
    comparison: Comparison
