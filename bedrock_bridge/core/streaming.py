from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import AsyncIterator

from .types import (
    BackendStreamEvent,
    ContentBlockDeltaEvent,
    ContentBlockStartEvent,
    ContentBlockStopEvent,
    MessageStopEvent,
    MetadataEvent,
)

logger = logging.getLogger(__name__)


class StreamState(str, Enum):
    NOT_STARTED = "not_started"
    PREAMBLE_EMITTED = "preamble_emitted"
    ACTIVE = "active"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class BlockKind(str, Enum):
    TEXT = "text"
    TOOL_USE = "tool_use"


@dataclass
class BlockState:
    kind: BlockKind
    partial_json: list[str] = field(default_factory=list)
    # Index the client sees; backend blocks that produce no frames are skipped.
    client_index: int = 0
    # Position of a tool-use block among the tool calls of this response.
    tool_call_index: int | None = None

    @property
    def accumulated_json(self) -> str:
        return "".join(self.partial_json)


class StreamSession:
    """Turns Bedrock stream events into client frames for one streaming request.

    Frames are produced strictly in event arrival order. Subclasses supply the
    dialect-specific frames; this class owns the state transitions and the
    per-block bookkeeping. A session is used by a single request task only.
    """

    default_stop_reason = ""

    def __init__(self) -> None:
        self.state = StreamState.NOT_STARTED
        self.blocks: dict[int, BlockState] = {}
        self.stop_reason = self.default_stop_reason
        self.input_tokens: int | None = None
        self.output_tokens = 0
        self._tool_call_count = 0
        self._block_count = 0

    @property
    def is_terminated(self) -> bool:
        return self.state in (StreamState.SUCCEEDED, StreamState.FAILED)

    def preamble(self) -> list[bytes]:
        if self.state is not StreamState.NOT_STARTED:
            return []

        self.state = StreamState.PREAMBLE_EMITTED
        return self.preamble_frames()

    def handle(self, event: BackendStreamEvent) -> list[bytes]:
        if self.is_terminated:
            raise RuntimeError(f"Stream session already {self.state.value}.")

        frames = self.preamble()
        self.state = StreamState.ACTIVE

        if isinstance(event, ContentBlockStartEvent):
            block = self._open_block(
                event.index,
                BlockKind.TOOL_USE if event.is_tool_use else BlockKind.TEXT,
            )
            frames.extend(self.block_start_frames(block.client_index, block, event))

        elif isinstance(event, ContentBlockDeltaEvent):
            frames.extend(self._handle_delta(event))

        elif isinstance(event, ContentBlockStopEvent):
            block = self.blocks.pop(event.index, None)
            if block is None:
                logger.debug("Ignoring stop for unopened block %d", event.index)
            else:
                if block.kind is BlockKind.TOOL_USE:
                    logger.debug(
                        "Tool input for block %d: %s", event.index, block.accumulated_json
                    )
                frames.extend(self.block_stop_frames(block.client_index))

        elif isinstance(event, MessageStopEvent):
            self.stop_reason = self.map_stop_reason(event.stop_reason)

        elif isinstance(event, MetadataEvent):
            self.output_tokens = event.usage.output_tokens
            self.input_tokens = event.usage.input_tokens

        return frames

    def finish(self) -> list[bytes]:
        frames = self.preamble()
        self.state = StreamState.SUCCEEDED
        frames.extend(self.terminal_frames())
        return frames

    def fail(self, exc: Exception) -> list[bytes]:
        self.state = StreamState.FAILED
        return self.error_frames(exc)

    async def run(
        self,
        events: AsyncIterator[BackendStreamEvent],
    ) -> AsyncIterator[bytes]:
        try:
            for frame in self.preamble():
                yield frame

            async for event in events:
                for frame in self.handle(event):
                    logger.debug("Streaming frame: %r", frame)
                    yield frame

            for frame in self.finish():
                yield frame

            logger.debug(
                "Stream finished stop_reason=%s output_tokens=%s",
                self.stop_reason,
                self.output_tokens,
            )

        except Exception as exc:
            logger.error("Inference backend streaming error: %r", exc)
            for frame in self.fail(exc):
                yield frame

        finally:
            aclose = getattr(events, "aclose", None)
            if aclose is not None:
                await aclose()

    def _open_block(self, index: int, kind: BlockKind) -> BlockState:
        block = BlockState(kind=kind, client_index=self._block_count)
        self._block_count += 1
        if kind is BlockKind.TOOL_USE:
            block.tool_call_index = self._tool_call_count
            self._tool_call_count += 1
        self.blocks[index] = block
        return block

    def _handle_delta(self, event: ContentBlockDeltaEvent) -> list[bytes]:
        frames: list[bytes] = []

        if event.text is not None:
            block = self.blocks.get(event.index)
            if block is None:
                # Bedrock starts text blocks with their first delta.
                block = self._open_block(event.index, BlockKind.TEXT)
                frames.extend(
                    self.block_start_frames(
                        block.client_index,
                        block,
                        ContentBlockStartEvent(index=event.index),
                    )
                )
            frames.extend(self.text_delta_frames(block.client_index, event.text))

        elif event.tool_input is not None:
            block = self.blocks.get(event.index)
            if block is None:
                # Without a start event there is no tool id or name to announce.
                logger.debug("Ignoring tool input for unopened block %d", event.index)
                return frames
            block.partial_json.append(event.tool_input)
            frames.extend(
                self.tool_input_frames(block.client_index, block, event.tool_input)
            )

        else:
            logger.debug("Ignoring delta without text or tool input for block %d", event.index)

        return frames

    # Dialect hooks; ``index`` is always the client-visible block index.

    def map_stop_reason(self, stop_reason: str | None) -> str:
        raise NotImplementedError

    def preamble_frames(self) -> list[bytes]:
        raise NotImplementedError

    def block_start_frames(
        self,
        index: int,
        block: BlockState,
        event: ContentBlockStartEvent,
    ) -> list[bytes]:
        raise NotImplementedError

    def text_delta_frames(self, index: int, text: str) -> list[bytes]:
        raise NotImplementedError

    def tool_input_frames(
        self,
        index: int,
        block: BlockState,
        fragment: str,
    ) -> list[bytes]:
        raise NotImplementedError

    def block_stop_frames(self, index: int) -> list[bytes]:
        raise NotImplementedError

    def terminal_frames(self) -> list[bytes]:
        raise NotImplementedError

    def error_frames(self, exc: Exception) -> list[bytes]:
        raise NotImplementedError
