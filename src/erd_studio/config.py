from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from pathlib import Path

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    output_dir: Path = Field(default=Path("./out"), alias="ERD_OUTPUT_DIR")
    log_level: str = Field(default="WARNING", alias="ERD_LOG_LEVEL")

    # 에디터 크기의 스키마 기준. 이보다 큰 입력은 변환하지 않는다.
    max_input_bytes: int = Field(default=5_000_000, alias="ERD_MAX_INPUT_BYTES")
    drop_unresolved_refs: bool = Field(default=True, alias="ERD_DROP_UNRESOLVED_REFS")

settings = Settings()
