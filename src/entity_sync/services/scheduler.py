"""
Cloud Scheduler service for cron-based sync schedules.

Cron schedules are not run in-process; instead a Cloud Scheduler HTTP job
calls the sync's trigger endpoint.
"""

import json
import logging
from typing import Dict, Any, Optional
from google.cloud import scheduler_v1
from google.auth import default

logger = logging.getLogger(__name__)


class SchedulerService:
    """
    Service for managing Cloud Scheduler jobs for entity syncs.
    """
    
    def __init__(self, project_id: Optional[str] = None, region: str = "us-central1", client=None):
        """
        Initialize Cloud Scheduler service.
        
        Args:
            project_id: Google Cloud project ID. If None, uses default from environment.
            region: Cloud Scheduler location
            client: Pre-built CloudSchedulerClient
        """
        try:
            if client is not None:
                self.client = client
                self.project_id = project_id
            elif project_id:
                self.client = scheduler_v1.CloudSchedulerClient()
                self.project_id = project_id
            else:
                credentials, project = default()
                self.client = scheduler_v1.CloudSchedulerClient(credentials=credentials)
                self.project_id = project
            
            self.region = region
            self.parent = f"projects/{self.project_id}/locations/{self.region}"
            
            logger.info(f"Scheduler service initialized for project: {self.project_id}, region: {self.region}")
            
        except Exception as e:
            logger.error(f"Failed to initialize Cloud Scheduler: {e}")
            raise
    
    def _job_path(self, sync_id: str) -> str:
        return f"{self.parent}/jobs/entity-sync-{sync_id}"
    
    def build_job(self, sync_id: str, schedule: str, service_url: str,
                  description: Optional[str] = None) -> Dict[str, Any]:
        """Build the HTTP job definition that triggers a sync."""
        return {
            "name": self._job_path(sync_id),
            "description": description or f"Scheduled entity sync {sync_id}",
            "schedule": schedule,
            "time_zone": "UTC",
            "http_target": {
                "uri": f"{service_url.rstrip('/')}/api/v1/syncs/{sync_id}/trigger",
                "http_method": scheduler_v1.HttpMethod.POST,
                "headers": {
                    "Content-Type": "application/json"
                },
                "body": json.dumps({"triggered_by": "scheduler"}).encode("utf-8"),
                "oidc_token": {
                    "service_account_email": f"entity-sync-sa@{self.project_id}.iam.gserviceaccount.com"
                }
            }
        }
    
    def create_schedule(
        self, 
        sync_id: str, 
        schedule: str, 
        service_url: str,
        description: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Create (or replace) the Cloud Scheduler job for a sync.
        
        Args:
            sync_id: Sync identifier
            schedule: Cron expression
            service_url: Base URL of this service
            description: Optional description
            
        Returns:
            Dictionary with scheduler job details
        """
        job = self.build_job(sync_id, schedule, service_url, description)
        try:
            self.delete_schedule(sync_id)
            response = self.client.create_job(parent=self.parent, job=job)
            
            logger.info(f"Created scheduler job for sync {sync_id} with schedule: {schedule}")
            
            return {
                "job_path": response.name,
                "schedule": schedule,
                "uri": job["http_target"]["uri"]
            }
            
        except Exception as e:
            logger.error(f"Failed to create schedule for sync {sync_id}: {e}")
            raise
    
    def delete_schedule(self, sync_id: str) -> bool:
        """
        Delete the Cloud Scheduler job for a sync.
        
        Returns:
            True if deleted, False if not found
        """
        try:
            self.client.delete_job(name=self._job_path(sync_id))
            logger.info(f"Deleted scheduler job for sync {sync_id}")
            return True
            
        except Exception as e:
            if "not found" in str(e).lower():
                return False
            logger.error(f"Failed to delete schedule for sync {sync_id}: {e}")
            raise
    
    def get_schedule(self, sync_id: str) -> Optional[Dict[str, Any]]:
        """
        Get Cloud Scheduler job details for a sync.
        
        Returns:
            Dictionary with scheduler job details, None if not found
        """
        try:
            job = self.client.get_job(name=self._job_path(sync_id))
            
            return {
                "job_path": job.name,
                "schedule": job.schedule,
                "time_zone": job.time_zone,
                "status": job.state.name,
                "uri": job.http_target.uri if job.http_target else None,
            }
            
        except Exception as e:
            if "not found" in str(e).lower():
                return None
            logger.error(f"Failed to get schedule for sync {sync_id}: {e}")
            raise
