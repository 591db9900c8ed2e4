import logging

import stripe

from service_errors import ServiceError, ServiceUnavailable

logger = logging.getLogger(__name__)


class PaymentService:
    def __init__(self, secret_key=None, currency='usd'):
        self.secret_key = secret_key
        self.currency = currency

    @property
    def enabled(self):
        return bool(self.secret_key)

    def create_payment_intent(self, amount, product_id, product_name=None):
        """Create a Stripe PaymentIntent and return its client secret.

        amount is in the smallest currency unit and is rounded to an integer.
        """
        if not self.enabled:
            raise ServiceUnavailable('Payments are not configured')

        product_name = product_name or f'Product #{product_id}'
        try:
            intent = stripe.PaymentIntent.create(
                api_key=self.secret_key,
                amount=int(round(amount)),
                currency=self.currency,
                description=f'Purchase of {product_name}',
                metadata={
                    'productId': str(product_id),
                    'productName': product_name
                }
            )
        except stripe.StripeError as e:
            logger.warning("Stripe payment intent failed: %s", e)
            raise ServiceError('Error creating payment intent') from e

        return intent.client_secret
