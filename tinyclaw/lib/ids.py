import secrets
import threading
import time
import uuid as _uuid

_state_lock = threading.Lock()
_last_timestamp_ms = 0
_counter = 0

_USE_NATIVE = hasattr(_uuid, "uuid7")


def now_ms() -> int:
    return int(time.time() * 1000)


def uuid7() -> str:
    """Time-ordered UUID v7, so delegated ids sort in creation order."""
    if _USE_NATIVE:
        return str(_uuid.uuid7())

    global _last_timestamp_ms, _counter

    with _state_lock:
        timestamp_ms = now_ms()

        # same-millisecond ids stay monotonic via a 12-bit counter
        if timestamp_ms <= _last_timestamp_ms:
            timestamp_ms = _last_timestamp_ms
            _counter += 1
            if _counter > 0xFFF:
                timestamp_ms += 1
                _counter = 0
        else:
            _counter = secrets.randbits(11)
        _last_timestamp_ms = timestamp_ms

        ts_and_version = (timestamp_ms << 16) | (7 << 12) | _counter
        variant_and_rand = (0b10 << 62) | secrets.randbits(62)

        return str(_uuid.UUID(int=(ts_and_version << 64) | variant_and_rand))


def short_id(full_id: str) -> str:
    """Last 8 chars: the random tail, safe for log lines."""
    return full_id[-8:]


def delegation_id(conversation_id: str) -> str:
    return f"{conversation_id}-{short_id(uuid7())}"
