"""
Health checks for the admin panel.

Response bodies follow the draft "Health Check Response Format for HTTP
APIs": an overall status plus one entry per checked component.
"""

import os
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

import psutil
from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from .logging_config import get_logger

logger = get_logger(__name__)

# A dependency probe returns its round-trip time in seconds or raises.
DependencyProbe = Callable[[], Awaitable[float]]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class HealthStatus(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    WARN = "warn"


class ServiceHealth:
    """
    Builds the health router for a service.

    Args:
        service_name: Reported as serviceId
        version: Reported service version
        dependencies: Named async probes for remote collaborators
        required_config: Configuration values that must be non-empty
            for the startup probe to pass
    """

    def __init__(
        self,
        service_name: str,
        version: str = "1.0.0",
        dependencies: Optional[Mapping[str, DependencyProbe]] = None,
        required_config: Optional[Mapping[str, Any]] = None,
    ):
        self.service_name = service_name
        self.version = version
        self.dependencies = dict(dependencies or {})
        self.required_config = dict(required_config or {})
        self.start_time = time.time()
        self.checks_performed = 0
        self.last_check_time: Optional[float] = None

    def create_health_router(self) -> APIRouter:
        router = APIRouter(tags=["health"])

        @router.get("/health", status_code=status.HTTP_200_OK)
        async def health_check() -> Dict[str, Any]:
            """Liveness summary; never touches dependencies."""
            return {
                "status": HealthStatus.PASS,
                "service": self.service_name,
                "version": self.version,
                "releaseId": os.getenv("RELEASE_ID", "unknown"),
                "timestamp": _now(),
            }

        @router.get("/health/live", status_code=status.HTTP_200_OK)
        async def liveness() -> Dict[str, Any]:
            return {"status": "alive"}

        @router.get("/health/ready")
        async def readiness() -> JSONResponse:
            checks = await self._perform_readiness_checks()
            overall_status = self._calculate_overall_status(checks)
            status_code = (
                status.HTTP_503_SERVICE_UNAVAILABLE
                if overall_status == HealthStatus.FAIL
                else status.HTTP_200_OK
            )
            return JSONResponse(status_code=status_code, content={
                "status": overall_status,
                "version": self.version,
                "releaseId": os.getenv("RELEASE_ID", "unknown"),
                "checks": checks,
                "serviceId": self.service_name,
                "description": f"{self.service_name} service",
                "timestamp": _now(),
            })

        @router.get("/health/startup")
        async def startup():
            checks = {"config:environment": self._check_config()}
            if self._calculate_overall_status(checks) != HealthStatus.PASS:
                return JSONResponse(
                    status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                    content={"status": "starting", "checks": checks},
                )
            return {"status": "started", "checks": checks}

        @router.get("/metrics")
        async def metrics() -> Dict[str, Any]:
            process = psutil.Process()
            memory = process.memory_info()
            return {
                "service": self.service_name,
                "version": self.version,
                "uptime_seconds": time.time() - self.start_time,
                "checks_performed": self.checks_performed,
                "timestamp": _now(),
                "system": {
                    "memory_rss_bytes": memory.rss,
                    "memory_vms_bytes": memory.vms,
                    "cpu_percent": process.cpu_percent(),
                    "num_threads": process.num_threads(),
                },
            }

        return router

    async def _perform_readiness_checks(self) -> Dict[str, Dict[str, Any]]:
        self.checks_performed += 1
        self.last_check_time = time.time()

        checks = {}
        for name, probe in self.dependencies.items():
            checks[f"{name}:connectivity"] = await self._check_dependency(name, probe)
        checks["storage:disk_space"] = self._check_disk_space()
        checks["system:memory"] = self._check_memory()
        return checks

    async def _check_dependency(self, name: str, probe: DependencyProbe) -> Dict[str, Any]:
        try:
            elapsed = await probe()
        except Exception as e:
            logger.error(f"Health check for {name} failed: {e}")
            return {
                "status": HealthStatus.FAIL,
                "componentType": "component",
                "output": str(e),
                "time": _now(),
            }
        return {
            "status": HealthStatus.PASS,
            "componentType": "component",
            "observedValue": f"{elapsed * 1000:.2f}",
            "observedUnit": "ms",
            "time": _now(),
        }

    def _check_disk_space(self) -> Dict[str, Any]:
        try:
            free_gb = psutil.disk_usage('/').free / (1024 ** 3)
        except OSError as e:
            return {"status": HealthStatus.WARN, "componentType": "system", "output": str(e), "time": _now()}

        if free_gb < 1:
            status_val = HealthStatus.FAIL
        elif free_gb < 5:
            status_val = HealthStatus.WARN
        else:
            status_val = HealthStatus.PASS
        return {
            "status": status_val,
            "componentType": "system",
            "observedValue": f"{free_gb:.2f}",
            "observedUnit": "GB",
            "time": _now(),
        }

    def _check_memory(self) -> Dict[str, Any]:
        available_mb = psutil.virtual_memory().available / (1024 ** 2)
        if available_mb < 100:
            status_val = HealthStatus.FAIL
        elif available_mb < 500:
            status_val = HealthStatus.WARN
        else:
            status_val = HealthStatus.PASS
        return {
            "status": status_val,
            "componentType": "system",
            "observedValue": f"{available_mb:.2f}",
            "observedUnit": "MB",
            "time": _now(),
        }

    def _check_config(self) -> Dict[str, Any]:
        missing = [name for name, value in self.required_config.items() if not value]
        if missing:
            return {
                "status": HealthStatus.FAIL,
                "componentType": "configuration",
                "output": f"Missing configuration: {', '.join(missing)}",
                "time": _now(),
            }
        return {"status": HealthStatus.PASS, "componentType": "configuration", "time": _now()}

    def _calculate_overall_status(self, checks: Dict[str, Dict[str, Any]]) -> HealthStatus:
        statuses = [check.get("status", HealthStatus.PASS) for check in checks.values()]
        if HealthStatus.FAIL in statuses:
            return HealthStatus.FAIL
        if HealthStatus.WARN in statuses:
            return HealthStatus.WARN
        return HealthStatus.PASS
