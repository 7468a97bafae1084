from pydantic_settings import BaseSettings


FANOUT_POLICIES = {"conversation", "broadcast"}
USER_DIRECTORIES = {"table", "messages"}


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///./data/relaychat.db"
    message_db_path: str = "./data/messages.db"
    log_level: str = "INFO"

    jwt_secret: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 1440  # 24h

    upload_dir: str = "./data/uploads"
    upload_url_prefix: str = "/uploads"
    max_upload_size: int = 26214400  # 25MB

    cors_origins: list[str] = ["*"]

    # "conversation": edits, deletes, reactions, status and seen events go to
    # sender + receiver connections. "broadcast": every connection.
    fanout_policy: str = "conversation"
    # Only the sender may edit or delete a message
    enforce_message_ownership: bool = True
    # "table": users come from the user table. "messages": legacy derivation
    # from message participants.
    user_directory: str = "table"

    model_config = {"env_file": ".env"}


settings = Settings()
