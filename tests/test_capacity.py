from qrpro.capacity import CapacityLevel, classify, classify_payload


def test_levels() -> None:
    assert classify(0) is CapacityLevel.OK
    assert classify(1000) is CapacityLevel.OK
    assert classify(1800) is CapacityLevel.WARN
    assert classify(2600) is CapacityLevel.CRITICAL


def test_boundaries() -> None:
    assert classify(1500) is CapacityLevel.OK
    assert classify(1501) is CapacityLevel.WARN
    assert classify(2000) is CapacityLevel.WARN
    assert classify(2001) is CapacityLevel.CRITICAL


def test_classify_payload_counts_characters() -> None:
    assert classify_payload("x" * 1501) is CapacityLevel.WARN
    assert classify_payload("") is CapacityLevel.OK
