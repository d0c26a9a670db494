from cliptrail.utils.kv_store import JsonFileStore, KeyValueStore, MemoryStore
from cliptrail.utils.log_sink import LogSink
from cliptrail.utils.scheduler import ManualScheduler, Scheduler, ThreadScheduler, TimerHandle

__all__ = [
    "JsonFileStore",
    "KeyValueStore",
    "MemoryStore",
    "LogSink",
    "ManualScheduler",
    "Scheduler",
    "ThreadScheduler",
    "TimerHandle",
]
