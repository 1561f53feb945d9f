"""
Limitation du nombre de tentatives sur les routes d'authentification

Fenêtre fixe par client et par action. Les compteurs vivent dans Redis
quand REDIS_URL est défini, sinon dans la mémoire du processus.
"""
import hashlib
import logging
import math
import os
import time
from typing import Dict, Optional, Tuple

from fastapi import HTTPException, Request
import redis

from constants import RATE_LIMITS

logger = logging.getLogger(__name__)


class MemoryCounters:
    """Compteurs locaux : {clé: (nombre, fin de fenêtre)}"""

    def __init__(self):
        self._windows: Dict[str, Tuple[int, float]] = {}

    def hit(self, key: str, window: int, now: float) -> Tuple[int, float]:
        self._drop_expired(now)
        count, ends_at = self._windows.get(key, (0, now + window))
        self._windows[key] = (count + 1, ends_at)
        return count + 1, ends_at - window

    def _drop_expired(self, now: float):
        self._windows = {
            key: value for key, value in self._windows.items()
            if value[1] > now
        }

    def clear(self):
        self._windows.clear()


class RedisCounters:
    """Compteurs partagés entre processus (INCR + EXPIRE)"""

    def __init__(self, client: redis.Redis):
        self.client = client

    def hit(self, key: str, window: int, now: float) -> Tuple[int, float]:
        try:
            pipe = self.client.pipeline()
            pipe.incr(key)
            pipe.ttl(key)
            count, ttl = pipe.execute()
            if ttl < 0:
                # Première tentative de la fenêtre
                self.client.expire(key, window)
                ttl = window
        except redis.RedisError as e:
            # Redis en panne : requête acceptée
            logger.warning("Redis indisponible, limite non appliquée: %s", e)
            return 0, now
        return int(count), now - (window - ttl)

    def clear(self):
        for key in self.client.scan_iter("rate_limit:*"):
            self.client.delete(key)


class RateLimiter:
    def __init__(self, redis_url: Optional[str] = None, limits: Optional[Dict] = None):
        self.limits = limits or RATE_LIMITS
        url = redis_url or os.getenv("REDIS_URL")
        self.counters = RedisCounters(redis.from_url(url)) if url else MemoryCounters()

    @staticmethod
    def client_key(request: Request, action: str) -> str:
        ip = request.client.host if request.client else "unknown"
        agent = request.headers.get("user-agent", "")[:100]
        # Empreinte identique dans tous les processus (clés Redis partagées)
        fingerprint = hashlib.sha1(agent.encode("utf-8")).hexdigest()[:8]
        return f"rate_limit:{action}:{ip}:{fingerprint}"

    def reset(self):
        self.counters.clear()

    def check_rate_limit(self, request: Request, action: str) -> bool:
        rule = self.limits.get(action)
        if rule is None:
            return True

        now = time.time()
        key = self.client_key(request, action)
        count, started = self.counters.hit(key, rule["window"], now)
        if count <= rule["requests"]:
            return True

        retry_after = max(1, math.ceil(rule["window"] - (now - started)))
        logger.warning("Trop de tentatives pour %s (%s)", action, key)
        raise HTTPException(
            status_code=429,
            detail=f"Trop de tentatives. Réessayez dans {retry_after} secondes.",
            headers={"Retry-After": str(retry_after)}
        )


rate_limiter = RateLimiter()


def check_rate_limit(action: str):
    """Dépendance FastAPI : Depends(check_rate_limit("login"))"""
    def dependency(request: Request):
        return rate_limiter.check_rate_limit(request, action)
    return dependency
