from django.apps import AppConfig


class CheckoutConfig(AppConfig):
    name = 'checkout'
    default_auto_field = 'django.db.models.BigAutoField'

    def ready(self):
        import stripe
        from loguru import logger

        from checkout.config import get_checkout_settings

        config = get_checkout_settings()
        config.validate()

        stripe.max_network_retries = 0
        stripe.default_http_client = stripe.RequestsClient(
            timeout=config.http_timeout_seconds)

        logger.debug(
            'checkout ready: env={} chain_id={} testnet={} tax_providers={} price_providers={}',
            config.app_env, config.chain_id, config.is_testnet,
            ','.join(config.tax_providers), ','.join(config.price_providers))
