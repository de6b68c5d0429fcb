from core.settings import *  # noqa: F401,F403

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

TAXJAR_API_KEY = 'taxjar-test-key'
STRIPE_SECRET_KEY = 'sk_test_checkout'
CHECKOUT_CHAIN_ID = 8453
