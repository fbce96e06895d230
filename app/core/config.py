import os
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    """
    Application configuration settings.
    """
    model_config = SettingsConfigDict(env_prefix="AGENTIC_ENGINE_", env_file=".env", extra="ignore")

    # Service Info
    service_name: str = "agentic-execution-engine"
    environment: str = "local"
    log_level: str = "INFO"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # LLM (Azure OpenAI)
    azure_openai_api_key: str = "placeholder-key"
    azure_openai_endpoint: str = "https://placeholder.openai.azure.com"
    azure_openai_api_version: str = "2024-02-15-preview"
    azure_openai_deployment_name: str = "gpt-4"

    # Generation bounds
    generation_timeout_seconds: float = 30.0
    generation_max_retries: int = 0
    default_max_tokens: int = 2000
    default_temperature: float = 0.7

    # Strategy tuning
    iterative_max_iterations: int = 5
    branch_count: int = 3

    # Side effects
    enable_tracing: bool = True
    enable_memory: bool = True

    # Paths
    base_dir: str = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
    prompts_dir: str = os.path.join(base_dir, "prompts")
    agents_file: str = os.path.join(prompts_dir, "agents.yaml")

settings = Settings()
