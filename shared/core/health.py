"""
Health and readiness probes (Kubernetes liveness/readiness/startup style,
response shape after the draft Health Check Response Format for HTTP APIs).
"""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from typing import Dict, Any, Optional
import os
import time
from datetime import datetime
from enum import Enum
import psutil
import logging

logger = logging.getLogger(__name__)

def _now() -> str:
    return datetime.utcnow().isoformat() + "Z"

class HealthStatus(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    WARN = "warn"

class ServiceHealth:
    """Health endpoints for one service backed by one relational database."""

    def __init__(self, service_name: str, version: str = "1.0.0",
                 database_url: Optional[str] = None, engine: Optional[Engine] = None):
        self.service_name = service_name
        self.version = version
        self.database_url = database_url
        self._engine = engine
        self.start_time = time.time()
        self.checks_performed = 0
        self.last_check_time = None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            if self.database_url is None:
                self.database_url = os.getenv("DATABASE_URL") or (
                    f"postgresql+psycopg2://"
                    f"{os.getenv('POSTGRES_USER', 'nearandnow')}:"
                    f"{os.getenv('POSTGRES_PASSWORD', 'nearandnow')}@"
                    f"{os.getenv('POSTGRES_HOST', 'postgres')}:"
                    f"{os.getenv('POSTGRES_PORT', '5432')}/"
                    f"{os.getenv('POSTGRES_DB', 'nearandnow')}"
                )
            self._engine = create_engine(self.database_url, pool_pre_ping=True)
        return self._engine

    def create_health_router(self) -> APIRouter:
        router = APIRouter(tags=["health"])

        @router.get("/health", status_code=status.HTTP_200_OK)
        async def health_check() -> Dict[str, Any]:
            """Liveness probe for load balancers"""
            return {
                "status": HealthStatus.PASS,
                "service": self.service_name,
                "version": self.version,
                "releaseId": os.getenv("RELEASE_ID", "unknown"),
                "timestamp": _now()
            }

        @router.get("/health/live", status_code=status.HTTP_200_OK)
        async def liveness() -> Dict[str, Any]:
            return {"status": "alive"}

        @router.get("/health/ready")
        async def readiness() -> JSONResponse:
            """Readiness probe: database, disk and memory"""
            checks = self.perform_readiness_checks()
            overall_status = self.calculate_overall_status(checks)
            status_code = status.HTTP_200_OK if overall_status != HealthStatus.FAIL else status.HTTP_503_SERVICE_UNAVAILABLE

            return JSONResponse(status_code=status_code, content={
                "status": overall_status,
                "version": self.version,
                "releaseId": os.getenv("RELEASE_ID", "unknown"),
                "checks": checks,
                "serviceId": self.service_name,
                "description": f"{self.service_name} microservice",
                "timestamp": _now()
            })

        @router.get("/health/startup")
        async def startup() -> Any:
            checks = self.perform_startup_checks()
            if self.calculate_overall_status(checks) == HealthStatus.FAIL:
                return JSONResponse(
                    status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                    content={"status": "starting", "checks": checks}
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
                    "num_threads": process.num_threads()
                }
            }

        return router

    def perform_readiness_checks(self) -> Dict[str, Dict[str, Any]]:
        self.checks_performed += 1
        self.last_check_time = time.time()
        return {
            "database:connectivity": self.check_database(),
            "storage:disk_space": self.check_disk_space(),
            "system:memory": self.check_memory(),
        }

    def perform_startup_checks(self) -> Dict[str, Dict[str, Any]]:
        return {
            "database:migrations": self.check_migrations(),
            "config:environment": self.check_environment(),
        }

    def check_database(self) -> Dict[str, Any]:
        try:
            start_time = time.time()
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1")).fetchone()
            response_time = (time.time() - start_time) * 1000
            return {
                "status": HealthStatus.PASS,
                "componentType": "datastore",
                "observedValue": f"{response_time:.2f}ms",
                "observedUnit": "ms",
                "time": _now()
            }
        except SQLAlchemyError as e:
            logger.error(f"Database health check failed: {e}")
            return {
                "status": HealthStatus.FAIL,
                "componentType": "datastore",
                "output": str(e),
                "time": _now()
            }

    def _threshold_check(self, observed: float, fail_below: float, warn_below: float, unit: str) -> Dict[str, Any]:
        if observed < fail_below:
            status_val = HealthStatus.FAIL
        elif observed < warn_below:
            status_val = HealthStatus.WARN
        else:
            status_val = HealthStatus.PASS
        return {
            "status": status_val,
            "componentType": "system",
            "observedValue": f"{observed:.2f}",
            "observedUnit": unit,
            "time": _now()
        }

    def check_disk_space(self) -> Dict[str, Any]:
        free_gb = psutil.disk_usage('/').free / (1024 ** 3)
        return self._threshold_check(free_gb, fail_below=1, warn_below=5, unit="GB")

    def check_memory(self) -> Dict[str, Any]:
        available_mb = psutil.virtual_memory().available / (1024 ** 2)
        return self._threshold_check(available_mb, fail_below=100, warn_below=500, unit="MB")

    def check_migrations(self) -> Dict[str, Any]:
        """Alembic has stamped the database"""
        try:
            exists = inspect(self.engine).has_table("alembic_version")
        except SQLAlchemyError as e:
            return {
                "status": HealthStatus.FAIL,
                "componentType": "datastore",
                "output": str(e),
                "time": _now()
            }
        result = {
            "status": HealthStatus.PASS if exists else HealthStatus.WARN,
            "componentType": "datastore",
            "time": _now()
        }
        if not exists:
            result["output"] = "Migrations table not found"
        return result

    def check_environment(self) -> Dict[str, Any]:
        """Either DATABASE_URL or the full set of POSTGRES_* variables is present"""
        if os.getenv("DATABASE_URL"):
            missing = []
        else:
            required_vars = ["POSTGRES_HOST", "POSTGRES_DB", "POSTGRES_USER", "POSTGRES_PASSWORD"]
            missing = [var for var in required_vars if not os.getenv(var)]

        if missing:
            return {
                "status": HealthStatus.FAIL,
                "componentType": "configuration",
                "output": f"Missing environment variables: {', '.join(missing)}",
                "time": _now()
            }
        return {
            "status": HealthStatus.PASS,
            "componentType": "configuration",
            "time": _now()
        }

    @staticmethod
    def calculate_overall_status(checks: Dict[str, Dict[str, Any]]) -> HealthStatus:
        statuses = [check.get("status", HealthStatus.PASS) for check in checks.values()]
        if HealthStatus.FAIL in statuses:
            return HealthStatus.FAIL
        if HealthStatus.WARN in statuses:
            return HealthStatus.WARN
        return HealthStatus.PASS
