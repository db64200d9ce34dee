import threading

_lock = threading.Lock()

METRICS = {
    "upload_requests": 0,
    "upload_successes": 0,
    "upload_failures": 0,
    "upload_bytes_stored": 0,
}

def inc(key, value=1):
    with _lock:
        METRICS[key] = METRICS.get(key, 0) + value

def record_status(status):
    inc(f"upload_status_{status}")

def snapshot():
    with _lock:
        return dict(METRICS)

def reset():
    with _lock:
        for key in list(METRICS):
            if key.startswith("upload_status_"):
                del METRICS[key]
            else:
                METRICS[key] = 0
