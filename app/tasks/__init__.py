"""
Background Tasks Module

All background job definitions for the ARQ workers.

Task Organization:
-----------------
- document_tasks.py: remote indexing of uploaded documents (documents queue)
- email_tasks.py:    marketing segment membership (email queue)
- queue.py:          enqueue helpers used by the API

How Tasks Work:
--------------
1. The API enqueues a job with a deterministic _job_id on a named queue
2. Redis stores the job in that queue
3. The worker for that queue picks it up and runs the task function
4. Result (or error) is stored back in Redis

Task functions receive a special `ctx` parameter:
- ctx['redis']: Redis connection for the worker
- ctx['job_id']: Unique ID of this job
- ctx['job_try']: Which retry attempt this is (1, 2, 3...)

Running Workers:
---------------
    arq app.worker.DocumentsWorkerSettings
    arq app.worker.EmailWorkerSettings
"""

from app.tasks.document_tasks import index_document
from app.tasks.email_tasks import add_to_marketing_segment, remove_from_marketing_segment

__all__ = [
    "index_document",
    "add_to_marketing_segment",
    "remove_from_marketing_segment",
]
