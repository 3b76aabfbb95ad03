"""Capacity Advisor: flag payloads nearing the reliable-scan ceiling.

Dense QR symbols get hard to scan somewhere around 2000-2500 characters,
depending on the error-correction level. The levels here are advisory only.
"""

from enum import Enum

OK_LIMIT = 1500
WARN_LIMIT = 2000


class CapacityLevel(str, Enum):
    OK = "ok"
    WARN = "warn"
    CRITICAL = "critical"


def classify(payload_length: int) -> CapacityLevel:
    """<= 1500 ok, <= 2000 warn, anything longer critical."""
    if payload_length <= OK_LIMIT:
        return CapacityLevel.OK
    if payload_length <= WARN_LIMIT:
        return CapacityLevel.WARN
    return CapacityLevel.CRITICAL


def classify_payload(payload: str) -> CapacityLevel:
    return classify(len(payload))
