import pytest
from pydantic import ValidationError

from src.crm_tool.config import Settings


def test_defaults_keep_sequential_permissive_import():
    settings = Settings(DATABASE_URL="sqlite://")

    assert settings.IMPORT_MAX_WORKERS == 1
    assert settings.IMPORT_PREVIEW_ROWS == 5
    assert settings.IMPORT_REQUIRE_MAPPED_FIELDS is False
    assert settings.csv_max_upload_bytes == 10 * 1024 * 1024


def test_unknown_environment_is_rejected():
    with pytest.raises(ValidationError, match="APP_ENV must be one of"):
        Settings(DATABASE_URL="sqlite://", APP_ENV="qa")


def test_worker_count_must_be_positive():
    with pytest.raises(ValidationError):
        Settings(DATABASE_URL="sqlite://", IMPORT_MAX_WORKERS=0)
