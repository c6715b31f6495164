from .worker_pool import WorkerPool as WorkerPool
