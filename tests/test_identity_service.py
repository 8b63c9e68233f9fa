import hashlib

from visitor_tracker.services.identity_service import (
    RawSignalBundle,
    SineOfflineRenderer,
    compute_fingerprint,
    crc32,
    fingerprint_components,
    generate_visitor_id,
    get_audio_signature,
    process_audio_signature,
    rolling_hash,
    simple_hash,
)


class ConstantRenderer:
    def __init__(self, value):
        self.value = value

    def render(self, channels, length, sample_rate, frequency, gain):
        return [[self.value] * length for _ in range(channels)]


class BrokenRenderer:
    def render(self, channels, length, sample_rate, frequency, gain):
        raise RuntimeError("render falló")


def _signals(**overrides):
    data = dict(
        user_agent="Mozilla/5.0 Test",
        language="en-US",
        platform="Win32",
        hardware_concurrency=8,
        device_memory=8,
        screen_width=1920,
        screen_height=1080,
        color_depth=24,
        timezone="America/Sao_Paulo",
        touch_support=False,
        do_not_track=None,
    )
    data.update(overrides)
    return RawSignalBundle(**data)


def test_rolling_hash_matches_string_hashcode():
    assert rolling_hash("") == 0
    assert rolling_hash("a") == 97
    assert rolling_hash("ab") == 97 * 31 + 98
    assert rolling_hash("hello") == 99162322


def test_rolling_hash_wraps_to_signed_32_bits():
    assert rolling_hash("polygenelubricants") == -2147483648


def test_simple_hash_is_zero_padded_hex():
    assert simple_hash("hello") == "0000000005e918d2"
    assert simple_hash("polygenelubricants") == "0000000080000000"


def test_visitor_id_is_deterministic():
    args = ("177.10.20.30", "124043", "3A1F9C2B", "Mozilla/5.0", "Win32")
    first = generate_visitor_id(*args)
    assert first == generate_visitor_id(*args)
    assert first == format(abs(rolling_hash("177.10.20.30||124043||Mozilla/5.0||Win32")), "x")


def test_visitor_id_prefers_raw_audio_signature():
    with_raw = generate_visitor_id("1.1.1.1", "124043", "3A1F9C2B", "UA", "Linux")
    without_raw = generate_visitor_id("1.1.1.1", None, "3A1F9C2B", "UA", "Linux")
    assert with_raw == format(abs(rolling_hash("1.1.1.1||124043||UA||Linux")), "x")
    assert without_raw == format(abs(rolling_hash("1.1.1.1||3A1F9C2B||UA||Linux")), "x")


def test_visitor_id_uses_unknown_for_missing_fields():
    expected = format(abs(rolling_hash("unknown||unknown||unknown||unknown")), "x")
    assert generate_visitor_id(None, None, None, None, None) == expected
    assert generate_visitor_id("", "", "", "", "") == expected


def test_crc32_reference_values():
    assert crc32("123456789") == "CBF43926"
    assert crc32("") == "00000000"
    assert crc32("The quick brown fox jumps over the lazy dog") == "414FA339"


def test_process_audio_signature_sentinels():
    assert process_audio_signature("UNSUPPORTED") == "N/D"
    assert process_audio_signature("ERROR") == "N/D"
    assert process_audio_signature("123456789") == "CBF43926"


def test_fingerprint_components_follow_browser_join_rules():
    joined = "||".join(fingerprint_components(_signals()))
    assert joined == "Mozilla/5.0 Test||en-US||Win32||8||8||1920x1080||24||America/Sao_Paulo||false||"


def test_fingerprint_defaults_missing_cores_and_memory_to_zero():
    components = fingerprint_components(_signals(hardware_concurrency=None, device_memory=None))
    assert components[3] == "0"
    assert components[4] == "0"


def test_fingerprint_uses_sha256():
    signals = _signals()
    joined = "||".join(fingerprint_components(signals))
    assert compute_fingerprint(signals) == hashlib.sha256(joined.encode("utf-8")).hexdigest()


def test_fingerprint_fallback_uses_rolling_hash():
    signals = _signals()
    joined = "||".join(fingerprint_components(signals))
    fingerprint = compute_fingerprint(signals, secure=False)
    assert fingerprint == simple_hash(joined)
    assert len(fingerprint) == 16


def test_audio_signature_sums_every_fourth_sample():
    # 256 muestras con paso 4 -> 64 muestras de 0.5 = 32.0
    assert get_audio_signature(ConstantRenderer(0.5)) == "32000000"
    assert get_audio_signature(ConstantRenderer(-0.25)) == "16000000"


def test_audio_signature_sentinels():
    assert get_audio_signature(None) == "UNSUPPORTED"
    assert get_audio_signature(BrokenRenderer()) == "ERROR"


def test_sine_renderer_signature_is_stable():
    first = get_audio_signature(SineOfflineRenderer())
    assert first.isdigit()
    assert first == get_audio_signature(SineOfflineRenderer())
    assert len(process_audio_signature(first)) == 8
