# /foodmarket/foodmarket/settings.py
"""
Foodmarket Django settings

CHANGE LOG
----------
2026-09-02 • Order pricing + refund policy config                                  # CHANGED:
- ORDER_TAX_RATE validated as a Decimal; invalid values fall back to 0.05.        # CHANGED:
- ORDER_REFUND_POLICY is a dotted path so the refund percentages are swappable.   # CHANGED:

2026-08-21 • Payment gateway config
- PAYMENT_GATEWAY_CLASS / PAYMENT_GATEWAY_TIMEOUT / PAYMENT_SIGNING_SECRET.
- Stripe keys loaded from env (never hardcoded).

2026-08-14 • Logging encoding → settings-level (UTF-8)
- RotatingFileHandler writes logs/foodmarket.log with encoding='utf-8'.
"""

from decimal import Decimal, InvalidOperation
from pathlib import Path
import os

from dotenv import load_dotenv

# ========= Base / Env =========
BASE_DIR = Path(__file__).resolve().parent.parent

ENV_CANDIDATES = [
    BASE_DIR / '.env',          # Local: project root
    BASE_DIR.parent / '.env',   # Local: repo root (if settings/ nested)
]
for _env in ENV_CANDIDATES:
    if _env.exists():
        load_dotenv(_env)
        print(f"[settings] Loaded env from: {_env}")
        break
else:
    load_dotenv()  # fallback (no-op if missing)


def _env_decimal(name: str, default: str) -> Decimal:
    raw = os.getenv(name, default)
    try:
        value = Decimal(str(raw).strip())
    except (InvalidOperation, ValueError):
        print(f"[WARNING] Invalid {name} '{raw}' detected. Falling back to {default}.")
        return Decimal(default)
    if value < 0:
        print(f"[WARNING] Negative {name} '{raw}' detected. Falling back to {default}.")
        return Decimal(default)
    return value


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        print(f"[WARNING] Invalid {name} '{raw}' detected. Falling back to {default}.")
        return default


# ========= Secret Key =========
DEBUG = os.getenv("DEBUG", "False") == "True"

SECRET_KEY = os.getenv('DJANGO_SECRET_KEY')
if not SECRET_KEY:
    # Local/test runs only; production deploys always set DJANGO_SECRET_KEY.
    print("[WARNING] DJANGO_SECRET_KEY not set; using an insecure development key.")
    SECRET_KEY = "foodmarket-insecure-development-key"

# ========= Hosts =========
ALLOWED_HOSTS = [
    "127.0.0.1",
    "localhost",
    "testserver",
] + (os.getenv("ADDITIONAL_HOSTS", "").split(",") if os.getenv("ADDITIONAL_HOSTS") else [])

SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")
SESSION_COOKIE_SECURE = not DEBUG
CSRF_COOKIE_SECURE = not DEBUG

# ========= Installed apps =========
INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "rest_framework",
    "anymail",

    "catalog",
    "orders",
    "payments",
]

# ========= Middleware =========
MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
]

# ========= URL / Templates / WSGI =========
ROOT_URLCONF = "foodmarket.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "foodmarket.wsgi.application"

# ========= Database =========
# Row locks (select_for_update) are only enforced on backends that support them;
# the optimistic version column on Order covers SQLite.
DATABASES = {
    "default": {
        "ENGINE": os.getenv("DB_ENGINE", "django.db.backends.sqlite3"),
        "NAME": os.getenv("DB_NAME", str(BASE_DIR / "db.sqlite3")),
        "USER": os.getenv("DB_USER", ""),
        "PASSWORD": os.getenv("DB_PASSWORD", ""),
        "HOST": os.getenv("DB_HOST", ""),
        "PORT": os.getenv("DB_PORT", ""),
    }
}
if DATABASES["default"]["ENGINE"].endswith("sqlite3"):
    DATABASES["default"]["OPTIONS"] = {"timeout": 30}

# ========= I18N =========
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

# ========= Security headers =========
SECURE_CONTENT_TYPE_NOSNIFF = True

if not DEBUG:
    SECURE_HSTS_SECONDS = 31536000
    SECURE_HSTS_INCLUDE_SUBDOMAINS = True

# ========= Static =========
STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

# ========= Defaults =========
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ========= REST framework =========
REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "orders.authentication.RouterHeaderAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.IsAuthenticated",
    ],
    "EXCEPTION_HANDLER": "orders.handlers.order_exception_handler",
    "UNAUTHENTICATED_USER": None,
}

# Shared key the routing layer presents with X-Caller-Id / X-Caller-Role.
ROUTER_SHARED_KEY = os.getenv("ROUTER_SHARED_KEY", "")

# ========= Orders =========
ORDER_TAX_RATE = _env_decimal("ORDER_TAX_RATE", "0.05")  # CHANGED:
ORDER_NUMBER_PREFIX = os.getenv("ORDER_NUMBER_PREFIX", "ORD").strip().upper() or "ORD"
ORDER_REFUND_POLICY = os.getenv(  # CHANGED:
    "ORDER_REFUND_POLICY",
    "orders.refunds.default_refund_policy",
)
DEFAULT_DELIVERY_ESTIMATE_MINUTES = _env_int("DEFAULT_DELIVERY_ESTIMATE_MINUTES", 30)

# ========= Payments =========
PAYMENT_CURRENCY = os.getenv("PAYMENT_CURRENCY", "inr").strip().lower() or "inr"
PAYMENT_SIGNING_SECRET = os.getenv("PAYMENT_SIGNING_SECRET", "")
PAYMENT_GATEWAY_CLASS = os.getenv("PAYMENT_GATEWAY_CLASS", "payments.gateway.StripeGateway")
PAYMENT_GATEWAY_TIMEOUT = _env_int("PAYMENT_GATEWAY_TIMEOUT", 10)

# ========= Stripe =========
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
STRIPE_PUBLISHABLE_KEY = os.getenv("STRIPE_PUBLISHABLE_KEY")
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")

# ========= Email (Mailgun via Anymail preferred) =========
EMAIL_BACKEND = os.getenv(
    "DJANGO_EMAIL_BACKEND",
    "anymail.backends.mailgun.EmailBackend"
)

ANYMAIL = {
    "MAILGUN_API_KEY": os.getenv("MAILGUN_API_KEY", ""),
    "MAILGUN_SENDER_DOMAIN": os.getenv("MAILGUN_DOMAIN", ""),
    "MAILGUN_API_URL": os.getenv("ANYMAIL_MAILGUN_API_URL", "https://api.mailgun.net/v3"),
}

EMAIL_TIMEOUT = _env_int("EMAIL_TIMEOUT", 10)
DEFAULT_FROM_EMAIL = os.getenv("DEFAULT_FROM_EMAIL", "Foodmarket <no-reply@mg.yourdomain.com>")

# ========= Logging =========
LOG_DIR = BASE_DIR / 'logs'
LOG_DIR.mkdir(exist_ok=True)

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{levelname} {asctime} {module} {process:d} {thread:d} {message}',
            'style': '{',
        },
        'simple': {
            'format': '{levelname} {message}',
            'style': '{',
        },
    },
    'handlers': {
        'file': {
            'level': 'INFO',
            'class': 'logging.handlers.RotatingFileHandler',
            'filename': LOG_DIR / 'foodmarket.log',
            'maxBytes': 1024*1024*15,
            'backupCount': 10,
            'formatter': 'verbose',
            'encoding': 'utf-8',
        },
        'console': {
            'level': 'INFO',
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
        },
    },
    'loggers': {
        'foodmarket': {
            'handlers': ['file', 'console'],
            'level': os.getenv("FOODMARKET_LOG_LEVEL", "INFO"),
            'propagate': True,
        },
        'django': {
            'handlers': ['file'],
            'level': 'ERROR',
            'propagate': True,
        },
    },
}
