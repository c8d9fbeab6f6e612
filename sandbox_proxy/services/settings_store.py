"""
Security Settings Store
In-memory per-identity security policies
"""

import asyncio
from typing import Dict

from loguru import logger

from sandbox_proxy.models import SecurityPolicy


class SecuritySettingsStore:
    """Keeps one SecurityPolicy per caller identity for the life of the process"""

    def __init__(self):
        self._policies: Dict[str, SecurityPolicy] = {}
        self._lock = asyncio.Lock()

    async def get(self, identity: str) -> SecurityPolicy:
        """Stored policy for ``identity``, or the default policy when none was saved"""
        return self._policies.get(identity) or SecurityPolicy()

    async def update(self, identity: str, policy: SecurityPolicy) -> SecurityPolicy:
        async with self._lock:
            self._policies[identity] = policy
        logger.info(f"Security settings updated for {identity}: {policy.model_dump(by_alias=True)}")
        return policy

    async def reset(self, identity: str):
        async with self._lock:
            self._policies.pop(identity, None)

    def get_identity_count(self) -> int:
        return len(self._policies)
