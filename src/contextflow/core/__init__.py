"""Core runtime utilities for ContextFlow."""

from .actions import task_from_response
from .ai_query import build_model_messages, interpret_response, query_ai
from .app_state import AppState
from .backend import AuthenticationError, Backend, RegistrationError
from .config_loader import (
    clear_config_cache,
    get_chat_config,
    get_context_limits,
    get_default_model,
    get_logging_config,
    get_model_config,
    get_provider_config,
    get_storage_config,
    load_config,
    resolve_config_path,
)
from .context_assembler import MAX_FILE_CHARS, MAX_TOTAL_CHARS, build_context
from .file_intake import SUPPORTED_EXTENSIONS, FileValidationError, build_uploaded_file, validate_upload
from .llm_client import call_llm
from .models import (
    AIResponse,
    Message,
    ScheduledTask,
    UploadedFile,
    UserProfile,
    UserRecord,
    VisualizationData,
)
from .observability import setup_logging
from .record_store import RecordStore
from .session_state import SessionState

__all__ = [
    "AIResponse",
    "AppState",
    "AuthenticationError",
    "Backend",
    "FileValidationError",
    "MAX_FILE_CHARS",
    "MAX_TOTAL_CHARS",
    "Message",
    "RecordStore",
    "RegistrationError",
    "SUPPORTED_EXTENSIONS",
    "ScheduledTask",
    "SessionState",
    "UploadedFile",
    "UserProfile",
    "UserRecord",
    "VisualizationData",
    "build_context",
    "build_model_messages",
    "build_uploaded_file",
    "call_llm",
    "clear_config_cache",
    "get_chat_config",
    "get_context_limits",
    "get_default_model",
    "get_logging_config",
    "get_model_config",
    "get_provider_config",
    "get_storage_config",
    "interpret_response",
    "load_config",
    "query_ai",
    "resolve_config_path",
    "setup_logging",
    "task_from_response",
    "validate_upload",
]
