from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

_N8N_BASE = "http://localhost:5678/webhook"


class Settings(BaseSettings):
	# Database
	database_url: str | None = Field(default=None, validation_alias="DATABASE_URL")
	log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

	# Remote workflow endpoints; each task kind has a primary and an optional fallback
	webhook_score_analysis_url: str = Field(default=f"{_N8N_BASE}/assessment-analysis", validation_alias="WEBHOOK_SCORE_ANALYSIS_URL")
	webhook_score_analysis_fallback_url: str | None = Field(default=None, validation_alias="WEBHOOK_SCORE_ANALYSIS_FALLBACK_URL")
	webhook_career_options_url: str = Field(default=f"{_N8N_BASE}/learning-path-options", validation_alias="WEBHOOK_CAREER_OPTIONS_URL")
	webhook_career_options_fallback_url: str | None = Field(default=None, validation_alias="WEBHOOK_CAREER_OPTIONS_FALLBACK_URL")
	webhook_career_details_url: str = Field(default=f"{_N8N_BASE}/detail-career-path", validation_alias="WEBHOOK_CAREER_DETAILS_URL")
	webhook_career_details_fallback_url: str | None = Field(default=None, validation_alias="WEBHOOK_CAREER_DETAILS_FALLBACK_URL")
	webhook_learning_path_url: str = Field(default=f"{_N8N_BASE}/learning-path", validation_alias="WEBHOOK_LEARNING_PATH_URL")
	webhook_learning_path_fallback_url: str | None = Field(default=None, validation_alias="WEBHOOK_LEARNING_PATH_FALLBACK_URL")
	webhook_assessment_questions_url: str = Field(default=f"{_N8N_BASE}/assessment-questions", validation_alias="WEBHOOK_ASSESSMENT_QUESTIONS_URL")
	webhook_assessment_questions_fallback_url: str | None = Field(default=None, validation_alias="WEBHOOK_ASSESSMENT_QUESTIONS_FALLBACK_URL")
	webhook_content_transcript_url: str = Field(default=f"{_N8N_BASE}/ai-buddy-main", validation_alias="WEBHOOK_CONTENT_TRANSCRIPT_URL")
	webhook_content_transcript_fallback_url: str | None = Field(default=None, validation_alias="WEBHOOK_CONTENT_TRANSCRIPT_FALLBACK_URL")
	webhook_module_assessment_url: str = Field(default=f"{_N8N_BASE}/mcq-evaluation", validation_alias="WEBHOOK_MODULE_ASSESSMENT_URL")
	webhook_module_assessment_fallback_url: str | None = Field(default=None, validation_alias="WEBHOOK_MODULE_ASSESSMENT_FALLBACK_URL")
	webhook_chat_answer_url: str = Field(default=f"{_N8N_BASE}/ai-buddy", validation_alias="WEBHOOK_CHAT_ANSWER_URL")
	webhook_chat_answer_fallback_url: str | None = Field(default=None, validation_alias="WEBHOOK_CHAT_ANSWER_FALLBACK_URL")

	# Pause between primary and fallback attempts (0 = immediate)
	webhook_retry_backoff_seconds: float = Field(default=0.0, validation_alias="WEBHOOK_RETRY_BACKOFF_SECONDS")

	# Result cache
	cache_ttl_hours: int = Field(default=24, validation_alias="CACHE_TTL_HOURS")
	# Serve locally generated fallbacks from cache too (off: next request retries the engine)
	cache_fallbacks: bool = Field(default=False, validation_alias="CACHE_FALLBACKS")

	# Retake ceiling for module assessments
	max_assessment_attempts: int = Field(default=5, validation_alias="MAX_ASSESSMENT_ATTEMPTS")

	# Retention for expired and failed rows
	result_retention_days: int = Field(default=7, validation_alias="RESULT_RETENTION_DAYS")

	# pydantic-settings v2 style config
	model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
