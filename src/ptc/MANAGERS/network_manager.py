"""
The private network every node of a cluster joins.
"""
import threading
from typing import Optional

from ..RUNNERS.container_runtime import ContainerRuntime
from ..UTILS.logging import get_logger

logger = get_logger(__name__)


class ClusterNetwork:
    """
    Owned handle on one runtime network.

    The network is created when the handle is built and released at most
    once by ``close``; later calls are no-ops.
    """
    def __init__(self, runtime: ContainerRuntime, name: str):
        """
        Creates the network.

        :param runtime: Runtime that owns the underlying network.
        :param name: Network name, unique on the runtime host.
        """
        self.runtime = runtime
        self.name = name
        self.network_id: Optional[str] = runtime.create_network(name)
        self._closed = False
        self._lock = threading.Lock()

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """
        Releases the network. A failure is logged, not raised.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True

        try:
            self.runtime.remove_network(self.network_id)
            logger.debug("Released network", network=self.name)
        except Exception:
            logger.warning("Failed to shutdown network", network=self.name, exc_info=True)
