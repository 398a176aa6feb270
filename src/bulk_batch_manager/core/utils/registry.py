# -*- coding: utf-8 -*-

"""
Persistent journal of created bulk jobs.

Jobs are recorded as soon as the service assigns their id, before any
batch is sent. After a crash, the journal tells which jobs may still be
processing and can be waited on.
"""

import logging
import platformdirs
from pathlib import Path
from datetime import datetime
from typing import Dict, List, Optional

from .misc import read_yaml, write_yaml


# Global registry instance
_registry = None


class JobRegistry:
    """YAML-backed registry of bulk jobs started from this machine."""

    def __init__(self, registry_path: Optional[str | Path] = None):
        self.registry_path = Path(registry_path) if registry_path else self._get_registry_path()
        self._ensure_registry_exists()

    def _get_registry_path(self) -> Path:
        """Get the platform-specific registry path."""
        data_dir = platformdirs.user_data_dir("bulk-batch-manager", "bulkbm")
        return Path(data_dir) / "jobs_registry.yaml"

    def _ensure_registry_exists(self):
        self.registry_path.parent.mkdir(parents=True, exist_ok=True)
        if not self.registry_path.exists():
            self._save_registry({"jobs": {}})

    def _load_registry(self) -> Dict:
        try:
            registry = read_yaml(self.registry_path)
        except Exception as e:
            logging.warning(f"Error loading job registry: {e}. Starting from an empty registry.")
            return {"jobs": {}}
        if not isinstance(registry, dict) or not isinstance(registry.get("jobs"), dict):
            return {"jobs": {}}
        return registry

    def _save_registry(self, registry: Dict):
        try:
            write_yaml(registry, self.registry_path)
        except Exception as e:
            logging.error(f"Error saving job registry: {e}")
            raise

    def record_job(self, job) -> None:
        """Record a newly created job. Signature matches job-created callbacks."""
        registry = self._load_registry()
        registry["jobs"][job.job_id] = {
            "operation": job.operation,
            "object": job.sobject,
            "status": "open",
            "created_at": datetime.now().isoformat(),
            "finished_at": None,
        }
        self._save_registry(registry)
        logging.debug(f"Recorded job {job.job_id} in job registry")

    def mark_finished(self, job_id: str) -> bool:
        registry = self._load_registry()
        info = registry["jobs"].get(job_id)
        if info is None:
            return False
        info["status"] = "finished"
        info["finished_at"] = datetime.now().isoformat()
        self._save_registry(registry)
        return True

    def get_job(self, job_id: str) -> Optional[Dict]:
        info = self._load_registry()["jobs"].get(job_id)
        if info is None:
            return None
        return {"job_id": job_id, **info}

    def list_jobs(self, pending_only: bool = False) -> List[Dict]:
        """List recorded jobs, most recent first."""
        jobs = [
            {"job_id": job_id, **info}
            for job_id, info in self._load_registry()["jobs"].items()
            if not pending_only or info.get("status") == "open"
        ]
        return sorted(jobs, key=lambda x: x.get("created_at") or "", reverse=True)

    def remove_job(self, job_id: str) -> bool:
        registry = self._load_registry()
        if job_id in registry["jobs"]:
            del registry["jobs"][job_id]
            self._save_registry(registry)
            logging.info(f"Removed job {job_id} from job registry")
            return True
        return False


def get_registry() -> JobRegistry:
    """Get the global job registry instance."""
    global _registry
    if _registry is None:
        _registry = JobRegistry()
    return _registry
