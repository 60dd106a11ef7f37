"""
Configuration validation and management for the Voice & PDF Chat backend.

This module validates all required environment variables on startup
and provides centralized configuration access.
"""

import os
from typing import Optional, List
from dataclasses import dataclass, field
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

DEFAULT_SYSTEM_INSTRUCTIONS = "You are friendly and helpful."

CHAT_PROVIDERS = ("openai", "gemini")
CHUNK_SPLITTERS = ("sentence", "paragraph")


@dataclass
class ConfigValidationError:
    """Represents a configuration validation error."""
    key: str
    message: str
    is_critical: bool = True


@dataclass
class AppConfig:
    """Application configuration with validated values."""

    # API Keys
    openai_api_key: str = ""
    gemini_api_key: str = ""
    cohere_api_key: str = ""

    # Chat model
    chat_provider: str = "openai"
    chat_model_name: str = "gpt-4o-mini"
    gemini_model_name: str = "gemini-2.5-flash"
    default_system_instructions: str = DEFAULT_SYSTEM_INSTRUCTIONS

    # Speech
    stt_model_id: str = "whisper-1"
    tts_voice_id: str = "alloy"
    tts_model_id: str = "tts-1"

    # Sessions
    sessions_dir: str = "sessions"
    session_locking: bool = True

    # Qdrant / embeddings
    qdrant_url: str = ""
    qdrant_api_key: str = ""
    qdrant_collection_name: str = "pdf_chunks"
    embedding_model: str = "embed-english-v3.0"
    top_k_results: int = 5
    score_threshold: float = 0.3

    # PDF chunking
    chunk_min_length: int = 1000
    chunk_max_length: int = 2000
    chunk_overlap: int = 100
    chunk_splitter: str = "sentence"

    # Server Configuration
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False
    log_level: str = "INFO"

    # CORS
    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    @property
    def retrieval_enabled(self) -> bool:
        """Retrieval needs both a vector store and an embedding key."""
        return bool(self.qdrant_url and self.cohere_api_key)


class ConfigValidator:
    """Validates and loads application configuration."""

    REQUIRED_VARS = [
        ("OPENAI_API_KEY", "Required for chat, transcription and speech synthesis"),
    ]

    OPTIONAL_VARS = [
        ("QDRANT_URL", "Optional: enables PDF indexing and retrieval"),
        ("QDRANT_API_KEY", "Optional: for Qdrant Cloud authentication"),
        ("COHERE_API_KEY", "Optional: for Cohere embeddings used by retrieval"),
    ]

    def __init__(self):
        self.errors: List[ConfigValidationError] = []
        self.warnings: List[str] = []
        self.config: Optional[AppConfig] = None

    def validate(self) -> bool:
        """
        Validate all configuration values.

        Returns:
            bool: True if all critical validations pass
        """
        self.errors = []
        self.warnings = []

        for var_name, description in self.REQUIRED_VARS:
            value = os.getenv(var_name)
            if not value or value.strip() == "":
                self.errors.append(ConfigValidationError(
                    key=var_name,
                    message=f"Missing required environment variable: {var_name}. {description}",
                    is_critical=True
                ))

        for var_name, description in self.OPTIONAL_VARS:
            value = os.getenv(var_name)
            if not value or value.strip() == "":
                self.warnings.append(f"Optional variable not set: {var_name}. {description}")

        self._validate_chat_provider()
        self._validate_qdrant_url()
        self._validate_port()
        self._validate_numeric_values()
        self._validate_chunking()

        return len([e for e in self.errors if e.is_critical]) == 0

    def _validate_chat_provider(self) -> None:
        """Validate the chat provider and its credentials."""
        provider = os.getenv("CHAT_PROVIDER", "openai").strip().lower()
        if provider not in CHAT_PROVIDERS:
            self.errors.append(ConfigValidationError(
                key="CHAT_PROVIDER",
                message=f"Invalid CHAT_PROVIDER: {provider}. Must be one of {', '.join(CHAT_PROVIDERS)}",
                is_critical=True
            ))
            return

        if provider == "gemini" and not os.getenv("GEMINI_API_KEY", "").strip():
            self.errors.append(ConfigValidationError(
                key="GEMINI_API_KEY",
                message="Missing required environment variable: GEMINI_API_KEY. Required when CHAT_PROVIDER=gemini",
                is_critical=True
            ))

    def _validate_qdrant_url(self) -> None:
        """Validate Qdrant URL format."""
        url = os.getenv("QDRANT_URL", "")
        if url and not (url.startswith("http://") or url.startswith("https://")):
            self.errors.append(ConfigValidationError(
                key="QDRANT_URL",
                message=f"Invalid QDRANT_URL format: {url}. Must start with http:// or https://",
                is_critical=True
            ))

    def _validate_port(self) -> None:
        """Validate port number."""
        port_str = os.getenv("PORT", "8000")
        try:
            port = int(port_str)
            if port < 1 or port > 65535:
                self.errors.append(ConfigValidationError(
                    key="PORT",
                    message=f"Invalid PORT: {port}. Must be between 1 and 65535",
                    is_critical=False
                ))
        except ValueError:
            self.errors.append(ConfigValidationError(
                key="PORT",
                message=f"Invalid PORT: {port_str}. Must be a number",
                is_critical=False
            ))

    def _validate_numeric_values(self) -> None:
        """Validate numeric configuration values."""
        numeric_vars = [
            ("TOP_K_RESULTS", 1, 50),
            ("CHUNK_MIN_LENGTH", 1, 20000),
            ("CHUNK_MAX_LENGTH", 100, 20000),
            ("CHUNK_OVERLAP", 0, 2000),
        ]

        for var_name, min_val, max_val in numeric_vars:
            value_str = os.getenv(var_name)
            if value_str:
                try:
                    value = int(value_str)
                    if value < min_val or value > max_val:
                        self.warnings.append(
                            f"{var_name}={value} is outside recommended range [{min_val}, {max_val}]"
                        )
                except ValueError:
                    self.errors.append(ConfigValidationError(
                        key=var_name,
                        message=f"Invalid {var_name}: {value_str}. Must be a number",
                        is_critical=False
                    ))

        threshold_str = os.getenv("SCORE_THRESHOLD")
        if threshold_str:
            try:
                float(threshold_str)
            except ValueError:
                self.errors.append(ConfigValidationError(
                    key="SCORE_THRESHOLD",
                    message=f"Invalid SCORE_THRESHOLD: {threshold_str}. Must be a number",
                    is_critical=False
                ))

    def _validate_chunking(self) -> None:
        """Validate the PDF chunking splitter and chunk bounds."""
        splitter = os.getenv("CHUNK_SPLITTER", "sentence").strip().lower()
        if splitter not in CHUNK_SPLITTERS:
            self.errors.append(ConfigValidationError(
                key="CHUNK_SPLITTER",
                message=f"Invalid CHUNK_SPLITTER: {splitter}. Must be one of {', '.join(CHUNK_SPLITTERS)}",
                is_critical=False
            ))

        def as_int(name: str, default: int) -> int:
            try:
                return int(os.getenv(name) or default)
            except ValueError:
                return default

        min_length = as_int("CHUNK_MIN_LENGTH", 1000)
        max_length = as_int("CHUNK_MAX_LENGTH", 2000)
        overlap = as_int("CHUNK_OVERLAP", 100)

        if min_length < 1 or max_length < 1:
            self.errors.append(ConfigValidationError(
                key="CHUNK_MAX_LENGTH" if max_length < 1 else "CHUNK_MIN_LENGTH",
                message=f"Chunk lengths must be positive (min={min_length}, max={max_length})",
                is_critical=True
            ))
        elif overlap < 0 or overlap * 2 >= max_length:
            self.errors.append(ConfigValidationError(
                key="CHUNK_OVERLAP",
                message=f"Invalid CHUNK_OVERLAP: {overlap}. Must be >= 0 and less than half of CHUNK_MAX_LENGTH ({max_length})",
                is_critical=True
            ))

    def load_config(self) -> AppConfig:
        """
        Load and return validated configuration.

        Returns:
            AppConfig: Loaded configuration object
        """
        def safe_int(value: Optional[str], default: int) -> int:
            try:
                return int(value) if value else default
            except (ValueError, TypeError):
                return default

        def safe_float(value: Optional[str], default: float) -> float:
            try:
                return float(value) if value else default
            except (ValueError, TypeError):
                return default

        def safe_bool(value: Optional[str], default: bool) -> bool:
            if not value:
                return default
            return value.lower() in ("true", "1", "yes")

        cors_origins_str = os.getenv("CORS_ORIGINS", "*")
        cors_origins = [o.strip() for o in cors_origins_str.split(",") if o.strip()]

        splitter = os.getenv("CHUNK_SPLITTER", "sentence").strip().lower()
        if splitter not in CHUNK_SPLITTERS:
            splitter = "sentence"

        self.config = AppConfig(
            openai_api_key=os.getenv("OPENAI_API_KEY", "").strip(),
            gemini_api_key=os.getenv("GEMINI_API_KEY", "").strip(),
            cohere_api_key=os.getenv("COHERE_API_KEY", "").strip(),
            chat_provider=os.getenv("CHAT_PROVIDER", "openai").strip().lower(),
            chat_model_name=os.getenv("CHAT_MODEL_NAME", "gpt-4o-mini"),
            gemini_model_name=os.getenv("GEMINI_MODEL_NAME", "gemini-2.5-flash"),
            default_system_instructions=os.getenv("DEFAULT_SYSTEM_INSTRUCTIONS", DEFAULT_SYSTEM_INSTRUCTIONS),
            stt_model_id=os.getenv("STT_MODEL_ID", "whisper-1"),
            tts_voice_id=os.getenv("TTS_VOICE_ID", "alloy"),
            tts_model_id=os.getenv("TTS_MODEL_ID", "tts-1"),
            sessions_dir=os.getenv("SESSIONS_DIR", "sessions"),
            session_locking=safe_bool(os.getenv("SESSION_LOCKING"), True),
            qdrant_url=os.getenv("QDRANT_URL", "").strip(),
            qdrant_api_key=os.getenv("QDRANT_API_KEY", "").strip(),
            qdrant_collection_name=os.getenv("QDRANT_COLLECTION_NAME", "pdf_chunks"),
            embedding_model=os.getenv("EMBEDDING_MODEL", "embed-english-v3.0"),
            top_k_results=safe_int(os.getenv("TOP_K_RESULTS"), 5),
            score_threshold=safe_float(os.getenv("SCORE_THRESHOLD"), 0.3),
            chunk_min_length=safe_int(os.getenv("CHUNK_MIN_LENGTH"), 1000),
            chunk_max_length=safe_int(os.getenv("CHUNK_MAX_LENGTH"), 2000),
            chunk_overlap=safe_int(os.getenv("CHUNK_OVERLAP"), 100),
            chunk_splitter=splitter,
            host=os.getenv("HOST", "0.0.0.0"),
            port=safe_int(os.getenv("PORT"), 8000),
            debug=safe_bool(os.getenv("DEBUG"), False),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            cors_origins=cors_origins,
        )

        return self.config

    def print_status(self) -> None:
        """Print configuration status to console."""
        print("\n" + "=" * 60)
        print("CONFIGURATION VALIDATION")
        print("=" * 60)

        if self.errors:
            print("\n[X] ERRORS:")
            for error in self.errors:
                critical = "[CRITICAL]" if error.is_critical else "[WARNING]"
                print(f"  {critical} {error.key}: {error.message}")

        if self.warnings:
            print("\n[!] WARNINGS:")
            for warning in self.warnings:
                print(f"  - {warning}")

        if not self.errors and not self.warnings:
            print("\n[OK] All configuration values are valid!")

        print("=" * 60 + "\n")


def validate_config_on_startup() -> AppConfig:
    """
    Validate configuration on application startup.

    Raises:
        ValueError: If critical configuration is missing. The server must not
            start serving requests in that case.

    Returns:
        AppConfig: Validated configuration
    """
    validator = ConfigValidator()
    is_valid = validator.validate()
    config = validator.load_config()

    validator.print_status()

    if not is_valid:
        error_msgs = [f"{error.key}: {error.message}" for error in validator.errors if error.is_critical]
        raise ValueError(
            f"Cannot start application due to configuration errors. "
            f"Missing or invalid: {', '.join(error_msgs)}"
        )

    return config


# Global config instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """
    Get the global configuration instance.

    Returns:
        AppConfig: Application configuration
    """
    global _config
    if _config is None:
        _config = validate_config_on_startup()
    return _config
