from environs import Env
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

env = Env()
env.read_env(BASE_DIR / '.env')

APP_ENV = env.str('APP_ENV', 'local')

SECRET_KEY = env.str('APP_SECRET_KEY', 'change-me')

DEBUG = APP_ENV != 'production'

ALLOWED_HOSTS = env.list('ALLOWED_HOSTS', default=['*'])

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'rest_framework',
    'checkout',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'core.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'core.wsgi.application'


DATABASES = {
    'default': {
        'ENGINE': env.str('DATABASE_ENGINE', 'django.db.backends.postgresql_psycopg2'),
        'NAME': env.str(
            'PGSQL_DATABASE_CHECKOUT',
            env.str('PGSQL_DATABASE', 'crypto_checkout'),
        ),
        'USER': env.str('PGSQL_USER', 'postgres'),
        'PASSWORD': env.str('PGSQL_PASSWORD', 'mysecretpassword'),
        'HOST': env.str('PGSQL_HOST', 'localhost'),
        'PORT': env.int('PGSQL_PORT', 5432),
    }
}


AUTH_PASSWORD_VALIDATORS = [
    {
        'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator',
    },
]


LANGUAGE_CODE = 'en-us'

TIME_ZONE = 'UTC'

USE_I18N = True

USE_TZ = True


STATIC_URL = '/static/'
STATIC_ROOT = BASE_DIR / 'static'

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

REST_FRAMEWORK = {
    'DEFAULT_RENDERER_CLASSES': [
        'rest_framework.renderers.JSONRenderer',
    ],
}

# Tax
TAXJAR_API_KEY = env.str('TAXJAR_API_KEY', '')
TAXJAR_API_URL = env.str('TAXJAR_API_URL', 'https://api.taxjar.com/v2')
STRIPE_SECRET_KEY = env.str('STRIPE_SECRET_KEY', '')
CHECKOUT_TAX_PROVIDERS = env.list('CHECKOUT_TAX_PROVIDERS', default=['taxjar', 'stripe'])
# Allows production to boot without a TaxJar key, charging zero tax on failure.
CHECKOUT_TAX_DEGRADE_TO_ZERO = env.bool('CHECKOUT_TAX_DEGRADE_TO_ZERO', False)

# Pricing and chain
CHECKOUT_UNIT_PRICE_CENTS = env.int('CHECKOUT_UNIT_PRICE_CENTS', 900)
CHECKOUT_RECEIVING_ADDRESS = env.str(
    'CHECKOUT_RECEIVING_ADDRESS', '0x9aE153b6C37D812e1BE8C55Ff0dd73c879cb34F8')
CHECKOUT_CHAIN_ID = env.int('CHECKOUT_CHAIN_ID', 84532)
CHECKOUT_RPC_URL = env.str('CHECKOUT_RPC_URL', 'https://mainnet.base.org')
CHECKOUT_ETH_USD_FEED_ADDRESS = env.str(
    'CHECKOUT_ETH_USD_FEED_ADDRESS', '0x71041dddad3595F9CEd3DcCFBe3D1F4b0a16Bb70')
CHECKOUT_USDC_CONTRACT = env.str(
    'CHECKOUT_USDC_CONTRACT', '0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913')
CHECKOUT_FALLBACK_ETH_PRICE_USD = env.decimal('CHECKOUT_FALLBACK_ETH_PRICE_USD', '3000')
CHECKOUT_PRICE_PROVIDERS = env.list(
    'CHECKOUT_PRICE_PROVIDERS', default=['chainlink', 'coingecko', 'fixed'])
COINGECKO_API_URL = env.str('COINGECKO_API_URL', 'https://api.coingecko.com/api/v3')
ALCHEMY_API_KEY = env.str('ALCHEMY_API_KEY', '')
CHECKOUT_HTTP_TIMEOUT_SECONDS = env.float('CHECKOUT_HTTP_TIMEOUT_SECONDS', 10.0)

# Credits
CREDITS_SUCCESS_URL = env.str('CREDITS_SUCCESS_URL', 'http://localhost:3000/profile?credits=success')
CREDITS_CANCEL_URL = env.str('CREDITS_CANCEL_URL', 'http://localhost:3000/credits')
