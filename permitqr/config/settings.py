from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    backend: str = "supabase"
    app_origin: str = "https://permitqrcode.lovable.app"

    permit_id_prefix: str = "KASUPDA-PERMIT-"
    permit_id_digits: int = 3
    id_allocation_attempts: int = 5

    max_upload_mb: float = 50.0
    max_concurrent_uploads: int = 3

    pdf_engine: str = "pymupdf"
    qr_size_points: float = 82.5
    qr_margin_points: float = 15.0
    qr_corner: str = "top_right"
    qr_error_correction: str = "M"
    qr_box_size: int = 10
    qr_border: int = 4

    stage_timeout_seconds: float = 0
    http_timeout_seconds: float = 30
    stale_processing_minutes: int = 30
    stale_check_interval_seconds: int = 60

    supabase_url: str = ""
    supabase_service_key: str = ""
    db_host: str = "localhost"
    db_port: int = 5432
    db_database: str = "postgres"
    db_username: str = "postgres"
    db_password: str = "secret"
    db_pool_max_size: int = 10
    original_bucket: str = "documents-original"
    processed_bucket: str = "documents-processed"
    # Both names are baked into backends/supabase/schema.sql; change them together
    permit_sequence: str = "permit_number_seq"
    changes_channel: str = "documents_changes"

    firebase_project_id: str = ""
    firebase_api_key: str = ""
    firebase_auth_token: str = ""
    firebase_storage_bucket: str = ""
    firebase_collection: str = "documents"
    firebase_poll_interval_seconds: float = 5

    local_data_dir: str = "./.permitqr"
    local_persist_binaries: bool = False
