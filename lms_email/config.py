"""Configuration loader for the LMS email service.

Settings come from an INI file (default: ``config.ini``) with environment
variables as fallbacks and hard-coded defaults as the last resort.

Example:
    Configuration file format (config.ini)::

        [email]
        enabled = true
        env = dev
        default_from = lms-noreply@iu.edu
        default_unsigned_to = lms-testing@iu.edu

        [signing]
        enabled = true
        url = https://sis.example.edu/email/send
        token = secret

        [smtp]
        host = mail-relay.example.edu
        port = 25

        [security]
        jwt_key = -----BEGIN PUBLIC KEY-----...
        jwt_algorithms = RS256
        profiles = emailrest, swagger

    Loading::

        config = load_settings("/etc/lms-email/config.ini")
        service = EmailService(config)
"""

from __future__ import annotations

import configparser
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

ENV_PREFIX = "LMS_EMAIL_"
PRODUCTION_ENV = "prd"
EMAILREST_PROFILE = "emailrest"
SWAGGER_PROFILE = "swagger"

_SECRET_FIELDS = {"signing_token", "signing_password", "smtp_password", "jwt_key"}

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass
class EmailServiceConfig:
    """Runtime configuration for :class:`lms_email.core.EmailService`.

    Attributes:
        enabled: When False messages are only logged, never sent.
        default_from: Sender used when a request carries no ``from``.
        default_unsigned_to: Redirect address for unsigned mail outside production.
        env: Environment name; ``prd`` disables the pre-production rewriting.
        signing_enabled: Whether the signed (SIS) path is attempted at all.
        signing_url: Endpoint of the signing service.
        signing_token: Bearer token for the signing service.
        signing_user: Basic-auth user for the signing service.
        signing_password: Basic-auth password for the signing service.
        signing_timeout: Total request timeout for the signing call, in seconds.
        smtp_host: SMTP relay host.
        smtp_port: SMTP relay port.
        smtp_user: Optional SMTP login.
        smtp_password: Optional SMTP password.
        smtp_use_tls: Direct TLS (usually port 465).
        smtp_start_tls: Upgrade a plain connection with STARTTLS.
        attachment_timeout: Timeout for each attachment download, in seconds.
        http_host: Bind address for the REST API.
        http_port: Bind port for the REST API.
        jwt_key: Secret or public key used to verify bearer tokens.
        jwt_algorithms: Accepted JWT signing algorithms.
        jwt_audience: Expected ``aud`` claim, if any.
        jwt_issuer: Expected ``iss`` claim, if any.
        profiles: Active deployment profiles (``emailrest``, ``swagger``).
    """

    enabled: bool = True
    default_from: str = "lms-noreply@iu.edu"
    default_unsigned_to: Optional[str] = None
    env: str = "dev"

    signing_enabled: bool = False
    signing_url: Optional[str] = None
    signing_token: Optional[str] = None
    signing_user: Optional[str] = None
    signing_password: Optional[str] = None
    signing_timeout: float = 30.0

    smtp_host: str = "localhost"
    smtp_port: int = 25
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_use_tls: bool = False
    smtp_start_tls: bool = False

    attachment_timeout: float = 30.0

    http_host: str = "0.0.0.0"
    http_port: int = 8000

    jwt_key: Optional[str] = None
    jwt_algorithms: List[str] = field(default_factory=lambda: ["RS256"])
    jwt_audience: Optional[str] = None
    jwt_issuer: Optional[str] = None
    profiles: List[str] = field(default_factory=lambda: [EMAILREST_PROFILE])

    @property
    def is_production(self) -> bool:
        return self.env == PRODUCTION_ENV

    def has_profiles(self, *names: str) -> bool:
        """Return True when every given profile is active."""
        return all(name in self.profiles for name in names)

    def as_dict(self, mask_secrets: bool = True) -> Dict[str, Any]:
        """Return the configuration as a plain dict, masking secrets by default."""
        data: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if mask_secrets and f.name in _SECRET_FIELDS and value:
                value = "***"
            data[f.name] = value
        return data


def _parse_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    normalized = str(value).strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    return default


def _parse_list(value: Optional[str], default: List[str]) -> List[str]:
    if value is None:
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def load_settings(config_path: str | os.PathLike | None = None) -> EmailServiceConfig:
    """Load configuration from an INI file with environment variables as fallbacks.

    Environment variables (all prefixed with LMS_EMAIL_):
      LMS_EMAIL_CONFIG - Path to config.ini file (default: config.ini)
      LMS_EMAIL_ENABLED, LMS_EMAIL_DEFAULT_FROM, LMS_EMAIL_DEFAULT_UNSIGNED_TO, LMS_EMAIL_ENV
      LMS_EMAIL_SIGNING_ENABLED, LMS_EMAIL_SIGNING_URL, LMS_EMAIL_SIGNING_TOKEN,
      LMS_EMAIL_SIGNING_USER, LMS_EMAIL_SIGNING_PASSWORD, LMS_EMAIL_SIGNING_TIMEOUT
      LMS_EMAIL_SMTP_HOST, LMS_EMAIL_SMTP_PORT, LMS_EMAIL_SMTP_USER, LMS_EMAIL_SMTP_PASSWORD,
      LMS_EMAIL_SMTP_USE_TLS, LMS_EMAIL_SMTP_START_TLS
      LMS_EMAIL_ATTACHMENT_TIMEOUT
      LMS_EMAIL_HOST, LMS_EMAIL_PORT
      LMS_EMAIL_JWT_KEY, LMS_EMAIL_JWT_ALGORITHMS, LMS_EMAIL_JWT_AUDIENCE,
      LMS_EMAIL_JWT_ISSUER, LMS_EMAIL_PROFILES

    Config file sections/keys:
      [email] enabled, default_from, default_unsigned_to, env
      [signing] enabled, url, token, user, password, timeout_seconds
      [smtp] host, port, user, password, use_tls, start_tls
      [attachments] timeout_seconds
      [server] host, port
      [security] jwt_key, jwt_algorithms, jwt_audience, jwt_issuer, profiles

    Raises:
        ValueError: If a numeric setting cannot be parsed.
    """
    if config_path is None:
        config_path = os.getenv(f"{ENV_PREFIX}CONFIG", "config.ini")
    parser = configparser.ConfigParser()
    path = Path(config_path)
    if path.exists():
        parser.read(path)

    def get(section: str, option: str, env: str) -> Optional[str]:
        if parser.has_option(section, option):
            return parser.get(section, option)
        return os.getenv(f"{ENV_PREFIX}{env}")

    def get_int(section: str, option: str, env: str, default: int) -> int:
        value = _clean(get(section, option, env))
        return default if value is None else int(value)

    def get_float(section: str, option: str, env: str, default: float) -> float:
        value = _clean(get(section, option, env))
        return default if value is None else float(value)

    defaults = EmailServiceConfig()
    return EmailServiceConfig(
        enabled=_parse_bool(get("email", "enabled", "ENABLED"), defaults.enabled),
        default_from=_clean(get("email", "default_from", "DEFAULT_FROM")) or defaults.default_from,
        default_unsigned_to=_clean(get("email", "default_unsigned_to", "DEFAULT_UNSIGNED_TO")),
        env=(_clean(get("email", "env", "ENV")) or defaults.env).lower(),
        signing_enabled=_parse_bool(get("signing", "enabled", "SIGNING_ENABLED"), defaults.signing_enabled),
        signing_url=_clean(get("signing", "url", "SIGNING_URL")),
        signing_token=_clean(get("signing", "token", "SIGNING_TOKEN")),
        signing_user=_clean(get("signing", "user", "SIGNING_USER")),
        signing_password=get("signing", "password", "SIGNING_PASSWORD"),
        signing_timeout=get_float("signing", "timeout_seconds", "SIGNING_TIMEOUT", defaults.signing_timeout),
        smtp_host=_clean(get("smtp", "host", "SMTP_HOST")) or defaults.smtp_host,
        smtp_port=get_int("smtp", "port", "SMTP_PORT", defaults.smtp_port),
        smtp_user=_clean(get("smtp", "user", "SMTP_USER")),
        smtp_password=get("smtp", "password", "SMTP_PASSWORD"),
        smtp_use_tls=_parse_bool(get("smtp", "use_tls", "SMTP_USE_TLS"), defaults.smtp_use_tls),
        smtp_start_tls=_parse_bool(get("smtp", "start_tls", "SMTP_START_TLS"), defaults.smtp_start_tls),
        attachment_timeout=get_float(
            "attachments", "timeout_seconds", "ATTACHMENT_TIMEOUT", defaults.attachment_timeout
        ),
        http_host=_clean(get("server", "host", "HOST")) or defaults.http_host,
        http_port=get_int("server", "port", "PORT", defaults.http_port),
        jwt_key=_clean(get("security", "jwt_key", "JWT_KEY")),
        jwt_algorithms=_parse_list(get("security", "jwt_algorithms", "JWT_ALGORITHMS"), defaults.jwt_algorithms),
        jwt_audience=_clean(get("security", "jwt_audience", "JWT_AUDIENCE")),
        jwt_issuer=_clean(get("security", "jwt_issuer", "JWT_ISSUER")),
        profiles=_parse_list(get("security", "profiles", "PROFILES"), defaults.profiles),
    )
