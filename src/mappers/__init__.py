"""Entity → DTO mappers."""

from src.mappers.data_subject_request import history_to_dto, to_dto, to_dto_list
from src.mappers.privacy_policy import acceptance_to_dto, policy_to_dto

__all__ = ["acceptance_to_dto", "history_to_dto", "policy_to_dto", "to_dto", "to_dto_list"]
