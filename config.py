"""
Configuration module for the theme tool runtime.
Handles environment variables, search/edit thresholds, and worker pool settings.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

_DEFAULT_SYNONYM_TABLE = os.path.join(os.path.dirname(os.path.abspath(__file__)), "tools", "data", "synonyms.json")


@dataclass
class AWSConfig:
    """AWS-specific configuration"""
    region: str = os.getenv("AWS_REGION", "us-east-1")
    access_key_id: str = os.getenv("AWS_ACCESS_KEY_ID", "")
    secret_access_key: str = os.getenv("AWS_SECRET_ACCESS_KEY", "")
    session_token: str = os.getenv("AWS_SESSION_TOKEN", "")
    profile_name: str = os.getenv("AWS_PROFILE", "")

    def has_explicit_credentials(self) -> bool:
        return bool(self.access_key_id and self.secret_access_key)

    def has_session_token(self) -> bool:
        return bool(self.session_token)

    def has_profile(self) -> bool:
        return bool(self.profile_name)


@dataclass
class SearchConfig:
    """Budgets and widening settings for grep/glob/semantic search"""
    grep_max_results: int = int(os.getenv("GREP_MAX_RESULTS", "50"))
    grep_max_tokens: int = int(os.getenv("GREP_MAX_TOKENS", "5000"))
    # Always keep at least this many matches even when the token budget is exceeded
    grep_min_kept: int = int(os.getenv("GREP_MIN_KEPT", "10"))
    semantic_limit: int = int(os.getenv("SEMANTIC_LIMIT", "10"))
    semantic_excerpt_files: int = int(os.getenv("SEMANTIC_EXCERPT_FILES", "5"))
    excerpt_context_lines: int = int(os.getenv("EXCERPT_CONTEXT_LINES", "3"))
    related_files_limit: int = int(os.getenv("RELATED_FILES_LIMIT", "15"))
    synonym_table_path: str = os.getenv("SYNONYM_TABLE_PATH", _DEFAULT_SYNONYM_TABLE)


@dataclass
class EditConfig:
    """Guardrail thresholds for replace/overwrite/line-range edits"""
    near_line_window: int = int(os.getenv("NEAR_LINE_WINDOW", "20"))
    # Overwrites of files longer than this are checked for shrinkage
    overwrite_min_chars: int = int(os.getenv("OVERWRITE_MIN_CHARS", "200"))
    overwrite_max_shrink: float = float(os.getenv("OVERWRITE_MAX_SHRINK", "0.5"))
    edit_lines_max_removed_ratio: float = float(os.getenv("EDIT_LINES_MAX_REMOVED_RATIO", "0.8"))
    max_write_bytes: int = int(os.getenv("MAX_WRITE_BYTES", str(1024 * 1024)))
    read_padding_lines: int = int(os.getenv("READ_PADDING_LINES", "2"))
    max_batch_chunks: int = int(os.getenv("MAX_BATCH_CHUNKS", "10"))


@dataclass
class WorkerConfig:
    """Parallel worker pool settings"""
    model: str = os.getenv("WORKER_MODEL", "us.anthropic.claude-haiku-4-5-20251001-v1:0")
    max_tokens: int = int(os.getenv("WORKER_MAX_TOKENS", "2048"))
    temperature: float = float(os.getenv("WORKER_TEMPERATURE", "0.3"))
    timeout_seconds: float = float(os.getenv("WORKER_TIMEOUT_SECONDS", "60"))
    max_concurrency: int = int(os.getenv("WORKER_MAX_CONCURRENCY", "4"))
    max_tool_rounds: int = int(os.getenv("WORKER_MAX_TOOL_ROUNDS", "3"))
    max_listed_files: int = int(os.getenv("WORKER_MAX_LISTED_FILES", "30"))


@dataclass
class AppConfig:
    """Application-specific configuration"""
    title: str = "Theme Tool Runtime"
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    working_directory: str = os.getenv("WORKING_DIRECTORY", ".")
    max_result_chars: int = int(os.getenv("MAX_RESULT_CHARS", "20000"))
    scratchpad_max_chars: int = int(os.getenv("SCRATCHPAD_MAX_CHARS", "20000"))
    vector_search_enabled: bool = os.getenv("VECTOR_SEARCH_ENABLED", "false").lower() == "true"
    embedding_model_id: str = os.getenv("EMBEDDING_MODEL_ID", "cohere.embed-english-v3")


# Hard ceiling on parallel workers regardless of configuration
MAX_WORKERS = 4

# Create global config instances
aws_config = AWSConfig()
search_config = SearchConfig()
edit_config = EditConfig()
worker_config = WorkerConfig()
app_config = AppConfig()


def get_credentials_info() -> str:
    if aws_config.has_profile():
        return f"Using AWS profile: {aws_config.profile_name}"
    elif aws_config.has_explicit_credentials():
        if aws_config.has_session_token():
            return "Using temporary credentials (with session token)"
        return "Using explicit credentials"
    return "Using default credential chain"


def clamp_concurrency(requested: Optional[int]) -> int:
    """Clamp a requested worker concurrency to [1, MAX_WORKERS]."""
    value = requested if requested else worker_config.max_concurrency
    return max(1, min(int(value), MAX_WORKERS))
