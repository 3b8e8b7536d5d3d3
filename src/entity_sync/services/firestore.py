"""
Firestore service for storing sync run history.
"""

import logging
from typing import Dict, List, Any, Optional
from google.cloud import firestore
from google.auth import default

from ..models.sync import SyncRunResult

logger = logging.getLogger(__name__)


class FirestoreService:
    """
    Service for storing and reading sync run summaries in Firestore.
    """
    
    def __init__(self, project_id: Optional[str] = None, client=None):
        """
        Initialize Firestore service.
        
        Args:
            project_id: Google Cloud project ID. If None, uses default from environment.
            client: Pre-built Firestore client
        """
        try:
            if client is not None:
                self.db = client
            elif project_id:
                self.db = firestore.Client(project=project_id)
            else:
                # Use application default credentials
                credentials, project = default()
                self.db = firestore.Client(project=project, credentials=credentials)
            
            self.runs_collection = "sync_runs"
            
            logger.info(f"Firestore service initialized for project: {self.db.project}")
            
        except Exception as e:
            logger.error(f"Failed to initialize Firestore: {e}")
            raise
    
    @staticmethod
    def _to_document(result: SyncRunResult) -> Dict[str, Any]:
        data = result.get_summary()
        for key in ("started_at", "completed_at"):
            if data.get(key):
                data[key] = data[key].isoformat()
        data["entity_filter"] = [
            {key: getattr(value, "value", value) for key, value in clause.items()}
            for clause in result.entity_filter
        ]
        data["failures"] = [
            {"entity_ref": item.entity_ref, "message": item.message}
            for item in result.items if item.status.value == "failed"
        ]
        return data
    
    def record_sync_run(self, result: SyncRunResult) -> Dict[str, Any]:
        """
        Store the summary of a finished run.
        
        Args:
            result: Finished sync run
            
        Returns:
            The stored document
        """
        try:
            data = self._to_document(result)
            self.db.collection(self.runs_collection).document(result.run_id).set(data)
            logger.info(f"Recorded sync run {result.run_id} for {result.sync_id}")
            return data
        except Exception as e:
            logger.error(f"Failed to record sync run {result.run_id}: {e}")
            raise
    
    def list_sync_runs(self, sync_id: Optional[str] = None, limit: int = 100) -> List[Dict[str, Any]]:
        """
        List run summaries, newest first.
        
        Args:
            sync_id: Only return runs of this sync
            limit: Maximum number of runs to return
        """
        try:
            query = self.db.collection(self.runs_collection)
            
            if sync_id:
                query = query.where("sync_id", "==", sync_id)
            
            query = query.order_by("started_at", direction=firestore.Query.DESCENDING)
            query = query.limit(limit)
            
            return [doc.to_dict() for doc in query.stream()]
            
        except Exception as e:
            logger.error(f"Failed to list sync runs: {e}")
            raise
    
    def get_sync_run(self, run_id: str) -> Optional[Dict[str, Any]]:
        """Get one run summary by ID."""
        try:
            doc = self.db.collection(self.runs_collection).document(run_id).get()
            return doc.to_dict() if doc.exists else None
        except Exception as e:
            logger.error(f"Failed to get sync run {run_id}: {e}")
            raise
