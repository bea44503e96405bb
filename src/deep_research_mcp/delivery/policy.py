"""Inline-vs-offload decision and the content blocks for each mode.

Remote (HTTP/SSE) clients always get a download reference. Local stdio
clients get the report inline up to SIZE_THRESHOLD_KB; past that, many
protocol clients truncate or reject the message, so it is offloaded too.
"""

from __future__ import annotations

import math
import re
from enum import StrEnum

SIZE_THRESHOLD_KB = 50
RESULT_HEADING = "## 🚀 RESEARCH COMPLETE"

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")


class DeliveryMode(StrEnum):
    INLINE = "inline"
    OFFLOADED = "offloaded"


class OffloadReason(StrEnum):
    HTTP = "http"
    SIZE_THRESHOLD = "size-threshold"


def report_size_kb(text: str) -> int:
    """UTF-8 size in KB, rounded half up."""
    return math.floor(len(text.encode("utf-8")) / 1024 + 0.5)


def decide(size_kb: int, remote: bool) -> DeliveryMode:
    """Offload for remote transports, or when the report exceeds the threshold."""
    return DeliveryMode.OFFLOADED if remote or size_kb > SIZE_THRESHOLD_KB else DeliveryMode.INLINE


def offload_reason(remote: bool) -> OffloadReason:
    return OffloadReason.HTTP if remote else OffloadReason.SIZE_THRESHOLD


def suggested_filename(query: str) -> str:
    """Local filename for the downloaded report, derived from the query."""
    return _NON_ALNUM.sub("_", query[:40]).lower() + "_report.md"


def render_inline(report: str) -> str:
    return f"{RESULT_HEADING}\n\n{report}"


def render_offloaded(*, report_url: str, size_kb: int, query: str, remote: bool) -> str:
    """Download instructions for an offloaded report.

    Calling agents rarely follow a bare link on their own, so the block spells
    out the fetch command and where to save the file.
    """
    filename = suggested_filename(query)
    size_note = (
        f"\n\n> **Note:** Report size ({size_kb} KB) exceeds {SIZE_THRESHOLD_KB} KB threshold, "
        "using URL mode for reliability."
        if not remote else ""
    )
    return f"""{RESULT_HEADING}

**Report Size:** {size_kb} KB
**Full Report URL:** {report_url}{size_note}

---

## ⚠️ ACTION REQUIRED: Download and save the full report

The complete report ({size_kb} KB) has been uploaded to cloud storage.

**You MUST download and save it locally:**

```bash
curl -L '{report_url}' -o {filename}
```

**Suggested filename:** `{filename}`

---

Download the file above to get the complete research output."""
