# sessionguard/core/service_base.py
"""
Lifecycle shared by components that hold a connection to an external store.

A service is connected once with ``initialize()``, used through ``client``
and released with ``shutdown()``. Subclasses supply ``_connect``,
``_disconnect`` and ``health_check``.
"""
from abc import ABC, abstractmethod
from typing import Optional, Dict, Any, TypeVar, Generic
import logging

from sessionguard.core.exceptions import ServiceError, ConfigurationError

ConfigType = TypeVar('ConfigType')


class BaseService(ABC, Generic[ConfigType]):

    def __init__(self, config: Optional[ConfigType] = None, logger: Optional[logging.Logger] = None):
        self.config = config
        self.service_name = self.__class__.__name__
        self.logger = logger or logging.getLogger(self.service_name)
        self._client = None
        self._initialized = False
        self._connect_failures = 0
        self._last_error: Optional[str] = None

    @abstractmethod
    async def _connect(self) -> Any:
        """Open the connection and return the client; raise on failure"""

    async def _disconnect(self) -> None:
        """Release the client; the default has nothing to release"""

    @abstractmethod
    async def health_check(self) -> Dict[str, Any]:
        """``{"healthy": bool, "status": str, "details": dict}``"""

    def _validate_config(self) -> None:
        if self.config is None:
            raise ConfigurationError(
                f"{self.service_name} needs a configuration",
                component=self.service_name
            )

    async def initialize(self) -> None:
        """Connect once; later calls return immediately"""
        if self._initialized:
            return

        self.logger.info(f"Connecting {self.service_name}...")
        try:
            self._validate_config()
            self._client = await self._connect()
        except (ConfigurationError, ServiceError) as e:
            self._record_failure(e)
            raise
        except Exception as e:
            self._record_failure(e)
            self.logger.error(f"{self.service_name} could not be initialized", exc_info=True)
            raise ServiceError(
                f"{self.service_name} could not be initialized",
                service_name=self.service_name,
                details={'cause': str(e), 'error_type': type(e).__name__}
            ) from e

        self._initialized = True
        self.logger.info(f"{self.service_name} connected")

    def _record_failure(self, error: Exception) -> None:
        self._connect_failures += 1
        self._last_error = str(error)

    async def ensure_initialized(self) -> None:
        if not self._initialized:
            await self.initialize()

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def client(self) -> Any:
        if not self._initialized or self._client is None:
            raise ServiceError(
                f"{self.service_name} used before initialize()",
                service_name=self.service_name
            )
        return self._client

    async def shutdown(self) -> None:
        """
        Release the connection.

        Never raises: a failing disconnect is logged and the service is
        marked closed regardless, so process shutdown always completes.
        """
        if not self._initialized:
            return

        self.logger.info(f"Closing {self.service_name}...")
        try:
            await self._disconnect()
        except Exception:
            self.logger.error(f"{self.service_name} did not close cleanly", exc_info=True)
        finally:
            self._client = None
            self._initialized = False
        self.logger.info(f"{self.service_name} closed")

    async def test_connection(self) -> bool:
        """True if the health check reports the store as reachable"""
        try:
            health = await self.health_check()
        except Exception:
            return False
        return bool(health.get("healthy", False))

    def get_metrics(self) -> Dict[str, Any]:
        return {
            "service_name": self.service_name,
            "initialized": self._initialized,
            "connect_failures": self._connect_failures,
            "last_error": self._last_error,
        }
