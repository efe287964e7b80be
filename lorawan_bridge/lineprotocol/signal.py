from __future__ import annotations

from typing import Iterable, Optional, Protocol


class SignalReport(Protocol):
    rssi: int
    lora_snr: float


def best_signal(reports: Iterable[SignalReport]) -> Optional[SignalReport]:
    """Report with the highest SNR; the earliest one wins a tie. ``None`` when empty."""

    best: Optional[SignalReport] = None
    for report in reports:
        if best is None or report.lora_snr > best.lora_snr:
            best = report
    return best
