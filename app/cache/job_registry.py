"""Recent job ids per queue, kept in a capped Redis list.

Celery results only answer "what is the state of job X"; the admin queue view
needs "which jobs were sent recently", so producers record ids here.
"""
import json
import logging
import time
from typing import Any, Dict, List, Optional

import redis

from app.core.config import settings

logger = logging.getLogger(__name__)

_client: Optional[redis.Redis] = None


def _key(queue_name: str) -> str:
    return f"queue:{queue_name}:jobs"


def get_client() -> redis.Redis:
    global _client
    if _client is None:
        _client = redis.Redis.from_url(settings.REDIS_URL, decode_responses=True)
    return _client


def record_job(queue_name: str, job_id: str, name: str, data: Dict[str, Any]) -> None:
    entry = json.dumps({
        "id": job_id,
        "name": name,
        "timestamp": int(time.time() * 1000),
        "data": data,
    })
    try:
        client = get_client()
        pipe = client.pipeline()
        pipe.lpush(_key(queue_name), entry)
        pipe.ltrim(_key(queue_name), 0, settings.EMAIL_JOB_HISTORY - 1)
        pipe.execute()
    except redis.RedisError as e:
        logger.error(f"Failed to record job {job_id} for queue {queue_name}: {e}")


def recent_jobs(queue_name: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
    end = (limit or settings.EMAIL_JOB_HISTORY) - 1
    try:
        raw = get_client().lrange(_key(queue_name), 0, end)
    except redis.RedisError as e:
        logger.error(f"Failed to read job registry for {queue_name}: {e}")
        return []

    jobs = []
    for item in raw:
        try:
            jobs.append(json.loads(item))
        except ValueError:
            continue
    return jobs
