import os
import tempfile
from pathlib import Path
from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    """
    Application configuration using Pydantic BaseSettings.

    Configuration priority (highest to lowest):
    1. Environment variables
    2. Configuration file (conf/docsync.conf)
    3. Default values defined here

    To add a new configuration:
    1. Add a field with type annotation and default value here
    2. (Optional) Add the value in conf/docsync.conf
    """

    # Snapshot repository
    GITHUB_TOKEN: str = ''  # Token with contents:write on the snapshot repo
    SNAPSHOT_REPO: str = ''  # 'owner/repo'
    SNAPSHOT_BRANCH: str = 'main'
    COMMIT_MESSAGE: str = 'chore: sync {sources} sources ({files} files)'
    GITHUB_API_URL: str = 'https://api.github.com'

    # Sources
    SOURCES_FILE: str = ''  # JSON catalog, built-in catalog when empty
    SOURCE_TOKEN: str = ''  # Token for cloning private sources, falls back to GITHUB_TOKEN
    YOUTUBE_API_KEY: str = ''

    # Workspace and state
    WORKSPACE_DIR: str = Field(default_factory=lambda: str(Path(tempfile.gettempdir()) / 'docsync'))
    CHECKPOINT_DIR: str = ''  # Step checkpoints, in memory when empty
    VERSIONS_FILE: str = Field(default_factory=lambda: str(Path(__file__).parent.parent.parent / 'meta' / 'versions.json'))
    SANDBOX_CONTAINER: str = ''  # Run fetches inside this container instead of locally

    # Logging configuration
    LOG_DIR: str = Field(default_factory=lambda: str(Path(__file__).parent.parent.parent / 'logs'))
    LOG_LEVEL: str = 'INFO'

    # Network and push tuning
    HTTP_TIMEOUT: int = 30
    BLOB_SIZE_THRESHOLD: int = 100 * 1024
    BLOB_WORKERS: int = 4
    RELEASE_CACHE_TTL: int = 600  # seconds

    # Workflow engine
    STEP_MAX_ATTEMPTS: int = 3
    STEP_RETRY_DELAY: float = 2.0
    RUN_TIMEOUT: int = 1800  # seconds, 0 disables

    # Field validators
    @field_validator('SNAPSHOT_REPO', mode='before')
    @classmethod
    def strip_repo(cls, v):
        """Accept 'https://github.com/owner/repo(.git)' as well as 'owner/repo'"""
        if isinstance(v, str):
            v = v.strip()
            if v.startswith('https://github.com/'):
                v = v.replace('https://github.com/', '')
            if v.endswith('.git'):
                v = v[:-4]
        return v

    model_config = SettingsConfigDict(
        env_file=None,  # We'll handle config file loading manually
        env_file_encoding='utf-8',
        case_sensitive=True,
        extra='ignore',  # Ignore extra fields in config file
    )

    @classmethod
    def load_from_file(cls, config_path: Optional[str] = None) -> 'AppConfig':
        """
        Load configuration from file and environment variables.

        Args:
            config_path: Path to config file. If None, will search in default locations.

        Returns:
            AppConfig instance
        """
        if config_path is None:
            possible_paths = [
                Path(__file__).parent.parent.parent / "conf" / "docsync.conf",
                Path.cwd() / "conf" / "docsync.conf",
            ]

            for path in possible_paths:
                if path.exists():
                    config_path = str(path)
                    break

        config_dict = load_config_from_file(config_path) if config_path else {}

        # Merge with environment variables (env vars take precedence)
        for field_name in cls.model_fields.keys():
            env_value = os.environ.get(field_name)
            if env_value is not None:
                config_dict[field_name] = env_value

        return cls(**config_dict)


def load_config_from_file(config_path: str) -> dict:
    """
    Parse a KEY=VALUE config file.

    Blank lines and lines starting with '#' are skipped, surrounding
    single or double quotes are removed from values.
    """
    config_dict = {}
    if not os.path.exists(config_path):
        return config_dict

    with open(config_path, 'r', encoding='utf-8') as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith('#'):
                continue

            if '=' in line:
                key, value = line.split('=', 1)
                key = key.strip()
                value = value.strip()

                # Remove quotes
                if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
                    value = value[1:-1]

                config_dict[key] = value

    return config_dict


# Global configuration instance
config = AppConfig.load_from_file()

def reload_config(config_path: Optional[str] = None):
    """
    Reload configuration from file.

    Args:
        config_path: Path to config file. If None, will search in default locations.
    """
    global config
    config = AppConfig.load_from_file(config_path)


# Lets `from docsync import config; config.SNAPSHOT_REPO` read the live instance
def __getattr__(name: str):
    if hasattr(config, name):
        return getattr(config, name)
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
