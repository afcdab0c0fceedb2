"""
Conversation Logger for Markdown Execution Logs.
Keeps a human-readable record of every exchange with the consultant.
"""

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

logger = logging.getLogger(__name__)


class ConversationLogger:
    """
    Markdown logger for consultant conversations.

    Documents:
    - Session starts
    - Finalized utterances and transcriptions
    - Knowledge hits and replies
    - Turn latency
    - Errors and system events

    Entries are queued and written by a background task once `start()` has
    run inside an event loop; before that they are written synchronously.
    """

    def __init__(self, log_path: Union[str, Path] = "logs/conversation_log.md"):
        self.log_path = Path(log_path)
        self.log_path.parent.mkdir(parents=True, exist_ok=True)

        self._queue: asyncio.Queue = asyncio.Queue()
        self._writer_task: Optional[asyncio.Task] = None
        self._running = False

    async def start(self):
        """Start the background log writer."""
        if self._writer_task is not None:
            return
        self._running = True
        self._writer_task = asyncio.create_task(self._write_loop())

    async def _write_loop(self):
        """Background loop to write logs asynchronously."""
        while True:
            try:
                entry = await self._queue.get()
                if entry is None:
                    break
                self._sync_write(entry)

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Log writer error: {e}")

    def _sync_write(self, entry: str):
        try:
            with open(self.log_path, "a", encoding="utf-8") as f:
                f.write(entry)
                f.write("\n")
        except OSError as e:
            logger.error(f"Failed to write log: {e}")

    async def _log(self, entry: str):
        """Add a log entry to the queue."""
        if self._running and self._writer_task:
            await self._queue.put(entry)
        else:
            self._sync_write(entry)

    # =========================
    # Public Logging Methods
    # =========================

    async def log_session_start(self, session_id: str, model_id: str, channel: str = "http"):
        """Log the start of a new session."""
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

        entry = f"""
---

## 🆕 Session Started: `{session_id}`

**Timestamp:** {timestamp}
**Model:** {model_id}
**Channel:** {channel}

---
"""
        await self._log(entry)

    async def log_user_input(
        self,
        session_id: str,
        text: str,
        source: str = "text",
        latency_ms: Optional[float] = None
    ):
        """Log a finalized utterance, transcription or typed message."""
        timestamp = datetime.now().strftime("%H:%M:%S")

        entry = f"""### 🎤 User Input | {timestamp}

**Session:** `{session_id}`
**Source:** {source}
**Text:** "{text}"
{f'**Transcription Latency:** {latency_ms:.0f}ms' if latency_ms else ''}
"""
        await self._log(entry)

    async def log_knowledge_hits(self, session_id: str, hits: List[Dict[str, Any]]):
        """Log the knowledge entries injected into the prompt."""
        timestamp = datetime.now().strftime("%H:%M:%S")

        if hits:
            rows = "\n".join(f"| `{hit['id']}` | {hit['title']} |" for hit in hits)
            body = f"| Entry | Title |\n|-------|-------|\n{rows}"
        else:
            body = "_No matching entries_"

        entry = f"""#### 📚 Knowledge Lookup | {timestamp}

**Session:** `{session_id}`

{body}
"""
        await self._log(entry)

    async def log_llm_response(
        self,
        session_id: str,
        response: str,
        model_id: str,
        tokens_used: Optional[int] = None,
        latency_ms: Optional[float] = None
    ):
        """Log LLM response."""
        timestamp = datetime.now().strftime("%H:%M:%S")

        display_response = response
        if len(response) > 500:
            display_response = response[:500] + "..."

        entry = f"""### 🤖 Consultant Response | {timestamp}

**Session:** `{session_id}`
**Model:** {model_id}

> {display_response}

{f'**Tokens Used:** {tokens_used}' if tokens_used else ''}
{f'**LLM Latency:** {latency_ms:.0f}ms' if latency_ms else ''}
"""
        await self._log(entry)

    async def log_turn_complete(self, session_id: str, metrics: Dict[str, Any]):
        """Log a complete conversation turn with metrics."""
        timestamp = datetime.now().strftime("%H:%M:%S")

        total_latency = metrics.get("total_latency_ms") or 0

        if total_latency < 1500:
            latency_status = "🟢 Excellent"
        elif total_latency < 3000:
            latency_status = "🟡 Good"
        else:
            latency_status = "🔴 Slow"

        def fmt(key: str) -> str:
            value = metrics.get(key)
            return f"{value:.0f}ms" if value is not None else "N/A"

        entry = f"""### ✅ Turn Complete | {timestamp}

**Session:** `{session_id}`

| Metric | Value |
|--------|-------|
| Total Latency | {latency_status} ({total_latency:.0f}ms) |
| Retrieval | {fmt('retrieval_latency_ms')} |
| LLM | {fmt('llm_latency_ms')} |
| TTS | {fmt('tts_latency_ms')} |

---
"""
        await self._log(entry)

    async def log_error(
        self,
        session_id: str,
        error_type: str,
        error_message: str,
        stack_trace: Optional[str] = None
    ):
        """Log an error."""
        timestamp = datetime.now().strftime("%H:%M:%S")

        entry = f"""### ❌ Error | {timestamp}

**Session:** `{session_id}`
**Type:** `{error_type}`
**Message:** {error_message}
"""

        if stack_trace:
            entry += f"""
<details>
<summary>Stack Trace</summary>

```
{stack_trace}
```

</details>
"""

        await self._log(entry)

    async def log_system_event(self, event: str, details: Dict[str, Any]):
        """Log a system event."""
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

        details_str = ""
        for key, value in details.items():
            details_str += f"- **{key}:** {value}\n"

        entry = f"""### ⚙️ System Event | {timestamp}

**Event:** {event}

{details_str}
---
"""
        await self._log(entry)

    async def initialize_log(self, version: str = "1.0.0"):
        """Initialize the log file with header."""
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

        header = f"""# 🎙️ Consultant Conversation Log

**Generated:** {timestamp}
**Version:** {version}

---

## System Overview

Voice chat with an AI consultant persona.

**Pipeline:** Utterance → Knowledge Lookup → LLM → TTS → Playback

---

## Conversation Log

"""

        with open(self.log_path, "w", encoding="utf-8") as f:
            f.write(header)

        logger.info(f"Conversation log initialized: {self.log_path}")

    async def close(self):
        """Close the logger and flush pending entries."""
        self._running = False

        if self._writer_task:
            await self._queue.put(None)
            try:
                await asyncio.wait_for(self._writer_task, timeout=2.0)
            except asyncio.TimeoutError:
                logger.warning("Log writer did not finish in time")
            self._writer_task = None

        while not self._queue.empty():
            try:
                entry = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            if entry is not None:
                self._sync_write(entry)

        logger.info("Conversation logger closed")
