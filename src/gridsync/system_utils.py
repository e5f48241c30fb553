import logging
import sys

import psutil

logger = logging.getLogger(__name__)


def log_system_status(store_name: str, active_sessions: int | None = None) -> None:
    """Log session store and system resource stats."""
    try:
        vm = psutil.virtual_memory()
        du = psutil.disk_usage("/")
        msg = (
            f"SessionStore={store_name} | RAM used={vm.percent:.1f}% "
            f"({vm.used // (1024**2)}MB/{vm.total // (1024**2)}MB) | "
            f"Disk used={du.percent:.1f}% "
            f"({du.used // (1024**3)}GB/{du.total // (1024**3)}GB)"
            + (
                f" | Active sessions={active_sessions}"
                if active_sessions is not None
                else ""
            )
        )
        logger.info(msg)
        print(f"[GridSync] {msg}", file=sys.stderr, flush=True)
    except Exception as exc:  # pragma: no cover
        logger.debug(f"Failed to log system status: {exc}")
