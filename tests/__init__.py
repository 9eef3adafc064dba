import os

# keep the suite offline: no remote model calls, no Redis
os.environ.setdefault("USE_LLM", "false")
os.environ.setdefault("REALTIME_BACKEND", "local")
