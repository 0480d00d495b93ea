"""
Protocol frame decoder.

Turns the raw byte fragments of one upstream response into normalized
chunks. Fragments may split lines (or multi-byte characters) anywhere, so
the decoder keeps the unterminated tail of the last delivery and prepends it
to the next one. One decoder per upstream stream; it is never shared between
tasks.
"""

import codecs
import logging
from typing import AsyncIterator, List, Optional, Union

import httpx
from pydantic import ValidationError

from loro.adapters.base import BaseUpstreamAdapter
from loro.errors import HttpClientError, JsonParseError, StreamProcessingError
from loro.models.chunks import MAX_CHUNK_BYTES, STOP_REASON, ChatCompletionChunk
from loro.services.prompts import APOLOGY_TEXT

logger = logging.getLogger("loro.decoder")

# An unterminated line this long can only become an oversized frame
MAX_PENDING_CHARS = 4 * MAX_CHUNK_BYTES


class FrameDecoder:
    def __init__(
        self,
        adapter: BaseUpstreamAdapter,
        request_id: str,
        model: str,
        strict_first: bool = False,
    ):
        self.adapter = adapter
        self.request_id = request_id
        self.model = model
        # Oversized first chunk is fatal instead of skipped
        self.strict_first = strict_first
        self.done = False
        self.emitted = 0
        self.skipped = 0
        self._buffer = ""
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def feed(self, data: Union[bytes, str]) -> List[ChatCompletionChunk]:
        """Consume one delivery and return the chunks of every line it completed."""
        if self.done:
            return []
        text = data if isinstance(data, str) else self._utf8.decode(data)
        self._buffer += text

        *lines, self._buffer = self._buffer.split("\n")
        if len(self._buffer) > MAX_PENDING_CHARS:
            logger.warning(
                f"[Decoder] Dropping unterminated frame of {len(self._buffer)} chars "
                f"(request {self.request_id})"
            )
            self._buffer = ""
            self.skipped += 1
        return self._decode_lines(lines)

    def flush(self) -> List[ChatCompletionChunk]:
        """Decode whatever is left once the upstream has closed."""
        self._buffer += self._utf8.decode(b"", final=True)
        tail, self._buffer = self._buffer, ""
        if self.done:
            return []
        return self._decode_lines([tail])

    @property
    def pending(self) -> str:
        return self._buffer

    def _decode_lines(self, lines: List[str]) -> List[ChatCompletionChunk]:
        chunks: List[ChatCompletionChunk] = []
        for raw in lines:
            if self.done:
                break
            line = raw.strip()
            if not line:
                continue
            try:
                result = self.adapter.decode_frame(line, self.request_id, self.model)
            except (JsonParseError, ValidationError) as e:
                self.skipped += 1
                logger.debug(f"[Decoder] Skipping malformed frame: {e}, data: {line[:200]}")
                continue

            if result.chunk is not None:
                chunk = self._admit(result.chunk)
                if chunk is not None:
                    chunks.append(chunk)
            if result.done:
                self.done = True
        return chunks

    def _admit(self, chunk: ChatCompletionChunk) -> Optional[ChatCompletionChunk]:
        size = len(chunk.to_json().encode("utf-8"))
        if size > MAX_CHUNK_BYTES:
            if self.strict_first and self.emitted == 0:
                raise StreamProcessingError(f"Response chunk too large: {size} bytes")
            self.skipped += 1
            logger.warning(f"[Decoder] Dropping oversized chunk: {size} bytes")
            return None
        self.emitted += 1
        return chunk

    def apology_chunk(self) -> ChatCompletionChunk:
        return ChatCompletionChunk.build(
            self.request_id, self.model, content=APOLOGY_TEXT, finish_reason=STOP_REASON
        )

    async def decode(self, byte_iter: AsyncIterator[bytes]) -> AsyncIterator[ChatCompletionChunk]:
        """
        Lazily decode an upstream byte iterator.

        Stops at the dialect's done marker or when upstream closes. A transport
        failure mid-stream ends the sequence with one apology chunk instead of
        propagating.
        """
        try:
            async for data in byte_iter:
                for chunk in self.feed(data):
                    yield chunk
                if self.done:
                    return
        except (httpx.TransportError, HttpClientError) as e:
            logger.error(f"[Decoder] Upstream stream failed after {self.emitted} chunks: {e!r}")
            yield self.apology_chunk()
            return

        for chunk in self.flush():
            yield chunk
