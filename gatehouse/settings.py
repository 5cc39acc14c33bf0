import os
import secrets
import sys
from pathlib import Path
from typing import Literal

import dj_database_url
import sentry_sdk
from pydantic import AnyUrl, BaseSettings, Field, validator
from sentry_sdk.integrations.django import DjangoIntegration
from sentry_sdk.scrubber import DEFAULT_DENYLIST, EventScrubber

from gatehouse import __version__

BASE_DIR = Path(__file__).resolve().parent.parent


class ImplicitHostname(AnyUrl):
    host_required = False


Environments = Literal["development", "production", "test"]

IdentityProviders = Literal["session", "header"]

GATEHOUSE_ENV_FILE = os.environ.get(
    "GATEHOUSE_ENV_FILE", "test.env" if "pytest" in sys.modules else ".env"
)


class Settings(BaseSettings):
    """
    Pydantic-powered settings, to provide consistent error messages, strong
    typing, consistent prefixes, .venv support, etc.
    """

    #: The default database.
    DATABASE_SERVER: ImplicitHostname | None

    #: Seconds a single database operation may take before the request is
    #: failed with a transient error.
    DATABASE_TIMEOUT: float = 5.0

    #: The currently running environment, used for things such as sentry
    #: error reporting.
    ENVIRONMENT: Environments = "development"

    #: Should django run in debug mode?
    DEBUG: bool = False

    #: Set a secret key used for signing values such as sessions. Randomized
    #: by default, so you'll logout everytime the process restarts.
    SECRET_KEY: str = Field(default_factory=lambda: "autokey-" + secrets.token_hex(128))

    #: If set, a list of allowed values for the HOST header. The default value
    #: of '*' means any host will be accepted.
    ALLOWED_HOSTS: list[str] = Field(default_factory=lambda: ["*"])

    #: If set, a list of hosts to accept for CSRF.
    CSRF_HOSTS: list[str] = Field(default_factory=list)

    #: If enabled, trust the HTTP_X_FORWARDED_FOR header.
    USE_PROXY_HEADERS: bool = False

    #: An optional Sentry DSN for error reporting.
    SENTRY_DSN: str | None = None
    SENTRY_SAMPLE_RATE: float = 1.0
    SENTRY_TRACES_SAMPLE_RATE: float = 0.01

    #: Log level for the gatehouse loggers.
    LOG_LEVEL: str = "INFO"

    #: The public base URL of this server, used as the OAuth issuer. If
    #: unset, it is worked out from each incoming request.
    ISSUER: AnyUrl | None = None

    #: How long an authorization code can be exchanged for, in seconds.
    OAUTH_CODE_LIFETIME: int = 600

    #: How long an access token is valid for, in seconds.
    OAUTH_TOKEN_LIFETIME: int = 3600

    #: Require every authorization request to carry a PKCE challenge.
    OAUTH_REQUIRE_PKCE: bool = True

    #: Accept the "plain" PKCE method as well as S256.
    OAUTH_ALLOW_PLAIN_PKCE: bool = False

    #: If a code exchange fails (wrong verifier, client or redirect URI),
    #: consume the code anyway so it cannot be retried.
    OAUTH_BURN_CODE_ON_FAILURE: bool = True

    #: Allow plain http:// redirect URIs to non-loopback hosts. Development
    #: only.
    OAUTH_ALLOW_INSECURE_REDIRECTS: bool = False

    #: Which identity provider establishes who the user is.
    IDENTITY_PROVIDER: IdentityProviders = "session"

    #: For the "header" identity provider, the headers a trusted upstream
    #: proxy uses to pass the authenticated account and its provider name.
    IDENTITY_ACCOUNT_HEADER: str = "X-Authenticated-Account"
    IDENTITY_PROVIDER_HEADER: str = "X-Authenticated-Provider"
    IDENTITY_EMAIL_HEADER: str = "X-Authenticated-Email"

    #: For the "header" identity provider, where the trusted proxy starts a
    #: social login, and the query parameter it reads the return URL from.
    IDENTITY_LOGIN_URL: str | None = None
    IDENTITY_LOGIN_REDIRECT_FIELD: str = "next"

    #: How long dead codes and tokens are kept for auditing before pruning,
    #: in days.
    PRUNE_RETENTION_DAYS: int = 7

    PGHOST: str | None = None
    PGPORT: int | None = 5432
    PGNAME: str = "gatehouse"
    PGUSER: str = "postgres"
    PGPASSWORD: str | None = None

    @validator("PGHOST", always=True)
    def validate_db(cls, PGHOST, values):  # noqa
        if not values.get("DATABASE_SERVER") and not PGHOST:
            raise ValueError("Either DATABASE_SERVER or PGHOST are required.")
        return PGHOST

    @validator("OAUTH_CODE_LIFETIME", "OAUTH_TOKEN_LIFETIME")
    def validate_lifetime(cls, value):  # noqa
        if value <= 0:
            raise ValueError("Lifetimes must be a positive number of seconds.")
        return value

    class Config:
        env_prefix = "GATEHOUSE_"
        env_file = str(BASE_DIR / GATEHOUSE_ENV_FILE)
        env_file_encoding = "utf-8"
        # Case sensitivity doesn't work on Windows, so might as well be
        # consistent from the get-go.
        case_sensitive = False

        # Override the env_prefix so these fields load without GATEHOUSE_
        fields = {
            "PGHOST": {"env": "PGHOST"},
            "PGPORT": {"env": "PGPORT"},
            "PGNAME": {"env": "PGNAME"},
            "PGUSER": {"env": "PGUSER"},
            "PGPASSWORD": {"env": "PGPASSWORD"},
        }


SETUP = Settings()

# Don't allow automatic keys in production
if SETUP.ENVIRONMENT == "production" and SETUP.SECRET_KEY.startswith("autokey-"):
    print("You must set GATEHOUSE_SECRET_KEY in production")
    sys.exit(1)
SECRET_KEY = SETUP.SECRET_KEY
DEBUG = SETUP.DEBUG

# Application definition

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "corsheaders",
    "core",
    "api",
    "users",
]

MIDDLEWARE = [
    "core.middleware.SentryTaggingMiddleware",
    "django.middleware.security.SecurityMiddleware",
    "corsheaders.middleware.CorsMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
    "core.middleware.HeadersMiddleware",
    "api.middleware.ApiTokenMiddleware",
]

ROOT_URLCONF = "gatehouse.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [BASE_DIR / "templates"],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "gatehouse.wsgi.application"

# The connection pool lives with Django's connection handler, which is set
# up once per process from here; nothing else caches a database handle.
if SETUP.DATABASE_SERVER:
    DATABASES = {
        "default": dj_database_url.parse(SETUP.DATABASE_SERVER, conn_max_age=600)
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "HOST": SETUP.PGHOST,
            "PORT": SETUP.PGPORT,
            "NAME": SETUP.PGNAME,
            "USER": SETUP.PGUSER,
            "PASSWORD": SETUP.PGPASSWORD,
            "CONN_MAX_AGE": 600,
        }
    }

if "sqlite" in DATABASES["default"]["ENGINE"]:
    DATABASES["default"].setdefault("OPTIONS", {})["timeout"] = SETUP.DATABASE_TIMEOUT
elif "postgresql" in DATABASES["default"]["ENGINE"]:
    DATABASES["default"].setdefault("OPTIONS", {}).update(
        {
            "connect_timeout": max(1, int(SETUP.DATABASE_TIMEOUT)),
            "options": f"-c statement_timeout={int(SETUP.DATABASE_TIMEOUT * 1000)}",
        }
    )

AUTH_PASSWORD_VALIDATORS = [
    {
        "NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.MinimumLengthValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.CommonPasswordValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.NumericPasswordValidator",
    },
]

LANGUAGE_CODE = "en-us"

TIME_ZONE = "UTC"

USE_I18N = True

USE_TZ = True

STATIC_URL = "static/"

STATIC_ROOT = BASE_DIR / "static-collected"

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

AUTH_USER_MODEL = "users.User"

LOGIN_URL = "/auth/login/"
LOGOUT_URL = "/auth/logout/"
LOGIN_REDIRECT_URL = "/"
LOGOUT_REDIRECT_URL = "/"

ALLOWED_HOSTS = SETUP.ALLOWED_HOSTS

CSRF_TRUSTED_ORIGINS = SETUP.CSRF_HOSTS

# Dynamic registration and the token endpoints are called from browsers on
# any origin; nothing else is.
CORS_ALLOW_ALL_ORIGINS = True
CORS_ALLOW_CREDENTIALS = False
CORS_URLS_REGEX = r"^/(register|oauth/(register|token|revoke)|\.well-known/.*)$"
CORS_ALLOW_METHODS = ["POST", "OPTIONS"]
CORS_ALLOW_HEADERS = ["content-type", "authorization"]
CORS_PREFLIGHT_MAX_AGE = 604800

if SETUP.USE_PROXY_HEADERS:
    SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {
            "format": "{asctime} {levelname} {name}: {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "simple",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": "WARNING",
    },
    "loggers": {
        "api": {"level": SETUP.LOG_LEVEL},
        "core": {"level": SETUP.LOG_LEVEL},
        "users": {"level": SETUP.LOG_LEVEL},
    },
}

# Request bodies and frame locals carry OAuth credentials; keep them out
# of Sentry.
SENTRY_SCRUBBED_KEYS = [
    "client_secret",
    "code",
    "code_verifier",
    "token",
    "access_token",
]
SENTRY_OPTIONS = {
    "traces_sample_rate": SETUP.SENTRY_TRACES_SAMPLE_RATE,
    "sample_rate": SETUP.SENTRY_SAMPLE_RATE,
    "send_default_pii": False,
    "max_request_body_size": "never",
    "include_local_variables": False,
    "event_scrubber": EventScrubber(
        denylist=DEFAULT_DENYLIST + SENTRY_SCRUBBED_KEYS
    ),
    "environment": SETUP.ENVIRONMENT,
}

if SETUP.SENTRY_DSN:
    sentry_sdk.init(
        dsn=SETUP.SENTRY_DSN,
        integrations=[
            DjangoIntegration(),
        ],
        **SENTRY_OPTIONS,
    )
    sentry_sdk.set_tag("gatehouse.version", __version__)

OAUTH_CODE_LIFETIME = SETUP.OAUTH_CODE_LIFETIME
OAUTH_TOKEN_LIFETIME = SETUP.OAUTH_TOKEN_LIFETIME
OAUTH_REQUIRE_PKCE = SETUP.OAUTH_REQUIRE_PKCE
OAUTH_ALLOW_PLAIN_PKCE = SETUP.OAUTH_ALLOW_PLAIN_PKCE
OAUTH_BURN_CODE_ON_FAILURE = SETUP.OAUTH_BURN_CODE_ON_FAILURE
OAUTH_ALLOW_INSECURE_REDIRECTS = SETUP.OAUTH_ALLOW_INSECURE_REDIRECTS
OAUTH_ISSUER = SETUP.ISSUER

IDENTITY_PROVIDER = SETUP.IDENTITY_PROVIDER
IDENTITY_ACCOUNT_HEADER = SETUP.IDENTITY_ACCOUNT_HEADER
IDENTITY_PROVIDER_HEADER = SETUP.IDENTITY_PROVIDER_HEADER
IDENTITY_EMAIL_HEADER = SETUP.IDENTITY_EMAIL_HEADER
IDENTITY_LOGIN_URL = SETUP.IDENTITY_LOGIN_URL
IDENTITY_LOGIN_REDIRECT_FIELD = SETUP.IDENTITY_LOGIN_REDIRECT_FIELD
