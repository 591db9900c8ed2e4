"""
Tests for the external service clients with the network patched out.
"""
import json
from unittest.mock import patch, MagicMock

import openai
import pytest
import requests
import stripe
from langchain_core.messages import AIMessage

from github_service import GitHubService
from palette_service import PaletteService, normalize_color
from payment_service import PaymentService
from service_errors import ServiceError, ServiceUnavailable


def fake_response(status_code=200, payload=None):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    return response


class TestGitHubService:
    def test_list_repos(self):
        with patch('github_service.requests.get', return_value=fake_response(payload=[{'name': 'site'}])) as get:
            repos = GitHubService(timeout=5).list_repos('octocat')

        assert repos == [{'name': 'site'}]
        url = get.call_args[0][0]
        assert url == 'https://api.github.com/users/octocat/repos'
        assert get.call_args[1]['timeout'] == 5
        assert 'Authorization' not in get.call_args[1]['headers']

    def test_token_is_sent(self):
        with patch('github_service.requests.get', return_value=fake_response(payload=[])) as get:
            GitHubService(token='ghp_x').list_repos('octocat')
        assert get.call_args[1]['headers']['Authorization'] == 'Bearer ghp_x'

    def test_error_status(self):
        with patch('github_service.requests.get', return_value=fake_response(404)):
            with pytest.raises(ServiceError):
                GitHubService().list_repos('ghost')

    def test_network_error(self):
        with patch('github_service.requests.get', side_effect=requests.ConnectionError('down')):
            with pytest.raises(ServiceError):
                GitHubService().list_repos('octocat')


def chat_model(content=None, error=None):
    """Stand-in ChatOpenAI class whose instances answer with content"""
    llm = MagicMock()
    if error is not None:
        llm.invoke.side_effect = error
    else:
        llm.invoke.return_value = AIMessage(content=content)
    return MagicMock(return_value=llm)


class TestPaletteService:
    def test_not_configured(self):
        with pytest.raises(ServiceUnavailable):
            PaletteService().generate_palette('ocean', 'calm')

    def test_generate_palette(self):
        content = json.dumps({'colors': ['#0a1b2c', 'FFFFFF', 'nope', '#123456']})
        model_class = chat_model(content)
        with patch('palette_service.ChatOpenAI', model_class):
            colors = PaletteService(api_key='sk-test', model='gpt-test').generate_palette('ocean', 'calm', 3)

        assert colors == ['#0A1B2C', '#FFFFFF', '#123456']
        assert model_class.call_args[1]['api_key'] == 'sk-test'
        assert model_class.call_args[1]['model'] == 'gpt-test'
        messages = model_class.return_value.invoke.call_args[0][0]
        assert 'exactly 3 colors' in messages[1].content
        assert model_class.return_value.invoke.call_args[1]['response_format'] == {'type': 'json_object'}

    def test_color_count_is_clamped(self):
        content = json.dumps({'colors': ['#000000'] * 20})
        model_class = chat_model(content)
        with patch('palette_service.ChatOpenAI', model_class):
            colors = PaletteService(api_key='sk-test').generate_palette('ocean', 'calm', 50)

        assert len(colors) == 10
        messages = model_class.return_value.invoke.call_args[0][0]
        assert 'exactly 10 colors' in messages[1].content

    def test_bad_model_output(self):
        with patch('palette_service.ChatOpenAI', chat_model('not json')):
            with pytest.raises(ServiceError):
                PaletteService(api_key='sk-test').generate_palette('ocean', 'calm')

    def test_no_valid_colors(self):
        content = json.dumps({'colors': ['red', 'blue']})
        with patch('palette_service.ChatOpenAI', chat_model(content)):
            with pytest.raises(ServiceError):
                PaletteService(api_key='sk-test').generate_palette('ocean', 'calm')

    def test_api_error(self):
        with patch('palette_service.ChatOpenAI', chat_model(error=openai.OpenAIError('rate limited'))):
            with pytest.raises(ServiceError):
                PaletteService(api_key='sk-test').generate_palette('ocean', 'calm')

    def test_normalize_color(self):
        assert normalize_color('#abcdef') == '#ABCDEF'
        assert normalize_color(' 00ff00 ') == '#00FF00'
        assert normalize_color('#fff') is None


class TestPaymentService:
    def test_not_configured(self):
        with pytest.raises(ServiceUnavailable):
            PaymentService().create_payment_intent(1000, 1)

    def test_create_payment_intent(self):
        intent = MagicMock(client_secret='pi_123_secret')
        with patch('payment_service.stripe.PaymentIntent.create', return_value=intent) as create:
            secret = PaymentService(secret_key='sk_test').create_payment_intent(1999.6, 7)

        assert secret == 'pi_123_secret'
        kwargs = create.call_args[1]
        assert kwargs['amount'] == 2000
        assert kwargs['currency'] == 'usd'
        assert kwargs['api_key'] == 'sk_test'
        assert kwargs['description'] == 'Purchase of Product #7'
        assert kwargs['metadata'] == {'productId': '7', 'productName': 'Product #7'}

    def test_named_product(self):
        intent = MagicMock(client_secret='pi_secret')
        with patch('payment_service.stripe.PaymentIntent.create', return_value=intent) as create:
            PaymentService(secret_key='sk_test', currency='eur').create_payment_intent(500, 'tpl', 'Template')

        kwargs = create.call_args[1]
        assert kwargs['currency'] == 'eur'
        assert kwargs['description'] == 'Purchase of Template'

    def test_stripe_error(self):
        with patch('payment_service.stripe.PaymentIntent.create', side_effect=stripe.StripeError('declined')):
            with pytest.raises(ServiceError):
                PaymentService(secret_key='sk_test').create_payment_intent(500, 1)
