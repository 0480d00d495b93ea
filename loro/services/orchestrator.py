"""
Dual-source stream orchestration.

Quick mode:
  1. Open the large-model stream and ask the small model for a filler
     utterance concurrently.
  2. Emit the filler as the first chunk (role=assistant).
  3. Forward the decoded large-model chunks in upstream order.
  4. Emit [DONE] and record timings into the "quick" collector.

Direct mode skips 1-2 and records into the "direct" collector.

Failing to open the large-model stream raises before anything is streamed,
so the API layer can still answer with an HTTP error. Once streaming has
started, errors become inline tokens and the sequence always ends with
[DONE].
"""

import time
import asyncio
import logging
from dataclasses import dataclass
from typing import AsyncIterator, Optional

import httpx

from loro.config import Settings
from loro.errors import InternalError, LoroError, StreamProcessingError
from loro.models.api import ChatRequest
from loro.models.chunks import ASSISTANT_ROLE, MAX_CHUNK_BYTES, ChatCompletionChunk, new_request_id
from loro.models.metrics import Comparison, MetricsSnapshot
from loro.services.decoder import FrameDecoder
from loro.services.quick_response import QuickResponseGenerator
from loro.services.retry import execute_with_retry
from loro.services.stats import StatsCollector
from loro.services.upstream import UpstreamClient

logger = logging.getLogger("loro.orchestrator")

DONE_SENTINEL = "[DONE]"


def error_token(error: Exception) -> str:
    return f"[ERROR: {error}]"


@dataclass
class RequestTimer:
    """Timing for one streamed request, recorded once the stream completes."""

    stats: StatsCollector
    request_start: float
    large_start: float
    quick_time: Optional[float] = None
    first_item_at: Optional[float] = None

    def mark_first_item(self) -> None:
        if self.first_item_at is None:
            self.first_item_at = time.perf_counter()

    def finish(self) -> None:
        now = time.perf_counter()
        first_item_at = self.first_item_at if self.first_item_at is not None else now
        total = now - self.request_start
        large_first = first_item_at - self.large_start

        if self.quick_time is not None:
            self.stats.record(self.quick_time, total, self.quick_time, large_first)
        else:
            # The large model is the whole response in direct mode
            first = first_item_at - self.request_start
            self.stats.record(first, total, None, total)


class LoroService:
    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_base_delay: float = 0.1,
    ):
        self.settings = settings
        self.retry_base_delay = retry_base_delay
        self.http = httpx.AsyncClient(
            timeout=httpx.Timeout(settings.HTTP_TIMEOUT_SECS, connect=5.0),
            limits=httpx.Limits(max_keepalive_connections=20, keepalive_expiry=60.0),
            transport=transport,
            # Backends are usually on localhost or a direct route
            trust_env=False,
        )
        self.small = UpstreamClient(
            name="small",
            base_url=settings.SMALL_MODEL_BASE_URL,
            api_key=settings.SMALL_MODEL_API_KEY.get_secret_value(),
            model_name=settings.SMALL_MODEL_NAME,
            http=self.http,
            timeout_secs=settings.SMALL_MODEL_TIMEOUT_SECS,
        )
        self.large = UpstreamClient(
            name="large",
            base_url=settings.LARGE_MODEL_BASE_URL,
            api_key=settings.LARGE_MODEL_API_KEY.get_secret_value(),
            model_name=settings.LARGE_MODEL_NAME,
            http=self.http,
            timeout_secs=settings.HTTP_TIMEOUT_SECS,
        )
        self.quick_generator = QuickResponseGenerator(
            self.small,
            max_retries=settings.MAX_RETRIES,
            retry_base_delay=retry_base_delay,
        )
        self.quick_stats = StatsCollector(settings.STATS_MAX_ENTRIES, name="quick")
        self.direct_stats = StatsCollector(settings.STATS_MAX_ENTRIES, name="direct")

        logger.info(
            f"[Loro] Small model: {self.small.model_name} ({self.small.adapter.dialect.value}), "
            f"large model: {self.large.model_name} ({self.large.adapter.dialect.value})"
        )

    async def aclose(self) -> None:
        await self.http.aclose()

    async def chat_completion(self, request: ChatRequest) -> AsyncIterator[str]:
        """
        Prepare the stream for one request and return its payload iterator.

        Items are serialized chunks, inline error tokens, and a final [DONE].
        """
        logger.debug(f"[Loro] Chat completion, disable_quick={request.disable_quick_response}")
        if request.disable_quick_response:
            return await self._stream_direct(request)
        return await self._stream_quick(request)

    async def _open_large_stream(self, request: ChatRequest) -> httpx.Response:
        body = self.large.adapter.build_stream_body(self.large.model_name, request)
        return await execute_with_retry(
            lambda: self.large.open_stream(body),
            self.settings.MAX_RETRIES,
            "large_model_request",
            base_delay=self.retry_base_delay,
        )

    async def _stream_quick(self, request: ChatRequest) -> AsyncIterator[str]:
        request_start = time.perf_counter()
        request_id = new_request_id()

        large_task = asyncio.create_task(self._open_large_stream(request))
        try:
            quick_text = await self.quick_generator.generate(request.messages)
            quick_time = time.perf_counter() - request_start
            logger.debug(f"[Loro] Quick response in {quick_time:.3f}s: {quick_text!r}")

            first_chunk = ChatCompletionChunk.build(
                request_id, request.model, content=quick_text, role=ASSISTANT_ROLE
            )
            first_data = first_chunk.to_json()
            first_size = len(first_data.encode("utf-8"))
            if first_size > MAX_CHUNK_BYTES:
                raise StreamProcessingError(f"Response chunk too large: {first_size} bytes")

            response = await large_task
        except BaseException:
            await _discard_stream_task(large_task)
            raise

        timer = RequestTimer(
            stats=self.quick_stats,
            request_start=request_start,
            large_start=request_start,
            quick_time=quick_time,
        )
        decoder = FrameDecoder(self.large.adapter, request_id, request.model)
        chunks = decoder.decode(response.aiter_bytes())
        return self._compose(response, chunks, timer, prefix=first_data)

    async def _stream_direct(self, request: ChatRequest) -> AsyncIterator[str]:
        request_start = time.perf_counter()
        request_id = new_request_id()

        response = await self._open_large_stream(request)
        timer = RequestTimer(stats=self.direct_stats, request_start=request_start, large_start=request_start)

        # Prime the first chunk so an unusable stream fails before any byte is sent
        decoder = FrameDecoder(self.large.adapter, request_id, request.model, strict_first=True)
        chunks = decoder.decode(response.aiter_bytes())
        try:
            first: Optional[ChatCompletionChunk] = await chunks.__anext__()
        except StopAsyncIteration:
            first = None
        except BaseException:
            await chunks.aclose()
            await response.aclose()
            raise

        prefix = None
        if first is not None:
            timer.mark_first_item()
            prefix = first.to_json()
        return self._compose(response, chunks, timer, prefix=prefix)

    async def _compose(
        self,
        response: httpx.Response,
        chunks: AsyncIterator[ChatCompletionChunk],
        timer: RequestTimer,
        prefix: Optional[str] = None,
    ) -> AsyncIterator[str]:
        try:
            if prefix is not None:
                yield prefix
            try:
                async for chunk in chunks:
                    timer.mark_first_item()
                    yield chunk.to_json()
            except LoroError as e:
                logger.error(f"[Loro] Stream error: {e}")
                yield error_token(e)
            except Exception as e:
                # Headers are already sent, the client still gets [DONE]
                logger.exception(f"[Loro] Unexpected stream error: {e!r}")
                yield error_token(InternalError(str(e)))
            yield DONE_SENTINEL
            timer.finish()
        finally:
            await response.aclose()

    def get_metrics(self) -> MetricsSnapshot:
        quick_avg = self.quick_stats.avg_first_response()
        direct_avg = self.direct_stats.avg_first_response()
        improvement = direct_avg - quick_avg if direct_avg > 0.0 and quick_avg > 0.0 else 0.0

        return MetricsSnapshot(
            quick_response_mode=self.quick_stats.snapshot(),
            direct_mode=self.direct_stats.snapshot(),
            comparison=Comparison(
                quick_mode_requests=self.quick_stats.request_count,
                direct_mode_requests=self.direct_stats.request_count,
                avg_first_response_improvement=improvement,
            ),
        )

    def reset_metrics(self) -> None:
        self.quick_stats.reset()
        self.direct_stats.reset()
        logger.info("[Loro] Metrics reset successfully")


async def _discard_stream_task(task: "asyncio.Task[httpx.Response]") -> None:
    """Release whatever a no-longer-needed large-stream task produced."""
    if not task.done():
        task.cancel()
        await asyncio.wait([task])
    if task.cancelled() or task.exception() is not None:
        return
    await task.result().aclose()
