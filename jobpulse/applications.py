"""
Application store client - job applications owned by the backend

JobPulse never creates or deletes application records; it reads them to
correlate with email and can change a record's status.
"""

import logging
from typing import List

from jobpulse.constants import APPLICATION_STATUSES
from jobpulse.email.client import ApiClient
from jobpulse.errors import InvalidPayload
from jobpulse.models import ApplicationRecord

logger = logging.getLogger(__name__)


class ApplicationStore(ApiClient):
    """Client for /api/job-applications/."""

    APPLICATIONS_PATH = "/api/job-applications/"

    def list_applications(self) -> List[ApplicationRecord]:
        data = self._json(self._request("GET", self.APPLICATIONS_PATH))
        if not isinstance(data, list):
            raise InvalidPayload("Expected a list of job applications")

        records = []
        for entry in data:
            try:
                records.append(ApplicationRecord.from_payload(entry))
            except InvalidPayload as e:
                logger.warning(f"Skipping job application: {e}")
        return records

    def update_status(self, application_id, status: str) -> None:
        """
        Change the stored status of an application.

        Raises:
            ValueError: If ``status`` is not a known application status
        """
        if status not in APPLICATION_STATUSES:
            raise ValueError(f"Invalid application status: {status}")

        self._request(
            "PATCH", f"{self.APPLICATIONS_PATH}{application_id}/", json={"status": status}
        )
        logger.info(f"Application {application_id} status set to {status}")
