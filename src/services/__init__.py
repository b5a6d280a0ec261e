"""Workflow services — data subject requests and privacy policy."""

from src.services.data_subject_requests import request_service
from src.services.privacy_policy import policy_service

__all__ = ["policy_service", "request_service"]
