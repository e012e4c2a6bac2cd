"""Redis-backed caches: the authorization cache (project id sets and details) and recent timesheets."""

import functools
import json
import logging
from datetime import date, datetime, time, timezone
from typing import Dict, Iterable, List, Optional, Set

from redis.asyncio import Redis
from redis.exceptions import RedisError

log = logging.getLogger(__name__)


class CacheUnavailable(Exception):
    """Redis could not be reached or returned an error."""


def _cache_call(func):
    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except RedisError as e:
            raise CacheUnavailable(f"{func.__name__}: {e}") from e
    return wrapper


class ProjectCache:
    """
    Key layout:
      user:{email}:projects        SET of project ids the user may see
      projects:data                HASH project id -> project JSON
      zoho:map:user_id_to_email    HASH Zoho portal user id -> email
      zoho:map:email_to_user_id    HASH email -> Zoho portal user id
    """

    PROJECTS_KEY = "projects:data"
    USER_ID_TO_EMAIL_KEY = "zoho:map:user_id_to_email"
    EMAIL_TO_USER_ID_KEY = "zoho:map:email_to_user_id"

    def __init__(self, redis: Redis, ttl_seconds: Optional[int] = None):
        self.redis = redis
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def user_key(email: str) -> str:
        return f"user:{email.lower()}:projects"

    # Per-user id sets

    @_cache_call
    async def get_project_ids(self, email: str) -> Set[str]:
        return set(await self.redis.smembers(self.user_key(email)))

    @_cache_call
    async def replace_user_projects(self, email: str, project_ids: Iterable[str]) -> None:
        """Clear the user's set and write the new ids in one MULTI block."""
        key = self.user_key(email)
        ids = sorted(set(project_ids))
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.delete(key)
            if ids:
                pipe.sadd(key, *ids)
                if self.ttl_seconds:
                    pipe.expire(key, self.ttl_seconds)
            await pipe.execute()

    @_cache_call
    async def add_user_projects(self, email: str, project_ids: Iterable[str]) -> None:
        ids = sorted(set(project_ids))
        if not ids:
            return
        key = self.user_key(email)
        await self.redis.sadd(key, *ids)
        if self.ttl_seconds:
            await self.redis.expire(key, self.ttl_seconds)

    @_cache_call
    async def remove_user_project(self, email: str, project_id: str) -> None:
        await self.redis.srem(self.user_key(email), project_id)

    # Project details

    @_cache_call
    async def get_projects(self, project_ids: Iterable[str]) -> Dict[str, dict]:
        """Details for the given ids; ids missing from the hash are absent from the result."""
        ids = list(project_ids)
        if not ids:
            return {}
        raw_values = await self.redis.hmget(self.PROJECTS_KEY, ids)
        projects: Dict[str, dict] = {}
        for project_id, raw in zip(ids, raw_values):
            if raw is None:
                continue
            try:
                projects[project_id] = json.loads(raw)
            except ValueError:
                log.warning(f"Discarding unparseable cached project {project_id}")
        return projects

    @_cache_call
    async def get_project(self, project_id: str) -> Optional[dict]:
        raw = await self.redis.hget(self.PROJECTS_KEY, project_id)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            return None

    @_cache_call
    async def put_projects(self, projects: List[dict], replace: bool = False) -> None:
        """Write project details; with replace=True the hash is rebuilt from scratch."""
        mapping = {p["id"]: json.dumps(p) for p in projects}
        async with self.redis.pipeline(transaction=True) as pipe:
            if replace:
                pipe.delete(self.PROJECTS_KEY)
            if mapping:
                pipe.hset(self.PROJECTS_KEY, mapping=mapping)
            await pipe.execute()

    async def put_project(self, project: dict) -> None:
        await self.put_projects([project])

    # Zoho user id <-> email maps

    @_cache_call
    async def set_user_maps(self, user_map: Dict[str, str], replace: bool = True) -> None:
        """Store zoho id -> email and the reverse map."""
        reverse = {email: zoho_id for zoho_id, email in user_map.items()}
        async with self.redis.pipeline(transaction=True) as pipe:
            if replace:
                pipe.delete(self.USER_ID_TO_EMAIL_KEY, self.EMAIL_TO_USER_ID_KEY)
            if user_map:
                pipe.hset(self.USER_ID_TO_EMAIL_KEY, mapping=user_map)
                pipe.hset(self.EMAIL_TO_USER_ID_KEY, mapping=reverse)
            await pipe.execute()

    @_cache_call
    async def get_email_for_zoho_id(self, zoho_id: str) -> Optional[str]:
        return await self.redis.hget(self.USER_ID_TO_EMAIL_KEY, zoho_id)

    @_cache_call
    async def get_zoho_id_for_email(self, email: str) -> Optional[str]:
        return await self.redis.hget(self.EMAIL_TO_USER_ID_KEY, email.lower())


def date_score(day: date) -> int:
    """Sort score for a timesheet date: UTC midnight in epoch milliseconds."""
    return int(datetime.combine(day, time.min, tzinfo=timezone.utc).timestamp() * 1000)


class EntryCache:
    """
    Recently submitted timesheets, so history reads skip the database.

    Key layout:
      entry:{id}                       HASH with a `data` field holding the timesheet JSON
      user:{email}:entries:by-date     ZSET of timesheet ids scored by date_score()
    """

    def __init__(self, redis: Redis, ttl_seconds: Optional[int] = None):
        self.redis = redis
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def entry_key(timesheet_id: str) -> str:
        return f"entry:{timesheet_id}"

    @staticmethod
    def user_key(email: str) -> str:
        return f"user:{email.lower()}:entries:by-date"

    @_cache_call
    async def put_entry(self, email: str, entry: dict) -> None:
        """Store one timesheet (the response JSON, keyed by `id` and dated by `date`)."""
        entry_key = self.entry_key(entry["id"])
        user_key = self.user_key(email)
        score = date_score(date.fromisoformat(entry["date"]))
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.hset(entry_key, "data", json.dumps(entry))
            pipe.zadd(user_key, {entry["id"]: score})
            if self.ttl_seconds:
                pipe.expire(entry_key, self.ttl_seconds)
                pipe.expire(user_key, self.ttl_seconds)
            await pipe.execute()

    @_cache_call
    async def list_entries(self, email: str, since: date) -> List[dict]:
        """Cached timesheets dated on or after `since`, newest first. Expired entries are skipped."""
        ids = await self.redis.zrevrangebyscore(self.user_key(email), "+inf", date_score(since))
        if not ids:
            return []
        async with self.redis.pipeline(transaction=False) as pipe:
            for timesheet_id in ids:
                pipe.hget(self.entry_key(timesheet_id), "data")
            raw_values = await pipe.execute()

        entries = []
        for timesheet_id, raw in zip(ids, raw_values):
            if raw is None:
                continue
            try:
                entries.append(json.loads(raw))
            except ValueError:
                log.warning(f"Discarding unparseable cached timesheet {timesheet_id}")
        return entries
